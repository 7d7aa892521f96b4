# main.py
from dataclasses import asdict
from datetime import timedelta, datetime
import fastapi
import json
import logging
from typing import List, Optional
from fastapi import Request, Depends, HTTPException, status, Query, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from slot_exchange.config import ACCESS_TOKEN_EXPIRE_MINUTES, LOG_LEVEL
from slot_exchange.database import database, engine, metadata
from slot_exchange.models import users
from slot_exchange.data_models import Decision, Direction, SlotStatus, SwapStatus
from slot_exchange.errors import NotFound, SwapError
from slot_exchange.slot_store import SlotStore
from slot_exchange.swap_store import SwapRequestStore
from slot_exchange.slots import SlotService
from slot_exchange.exchange import ExchangeCoordinator
from slot_exchange.resolution import ResolutionEngine
from slot_exchange.queries import RequestQueryService
from slot_exchange.auth import (
    User,
    Token,
    UserCreate,
    verify_password,
    create_access_token,
    get_current_active_user,
    create_user,
    decode_token_and_get_user,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Engine wiring
slot_store = SlotStore(database)
swap_store = SwapRequestStore(database)
slot_service = SlotService(slot_store)
coordinator = ExchangeCoordinator(database, slot_store, swap_store)
resolver = ResolutionEngine(database, slot_store, swap_store)
request_queries = RequestQueryService(swap_store)

# Error kind -> HTTP status
ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "invalid_request": status.HTTP_400_BAD_REQUEST,
    # a lost race is reported like any other business rule failure; the body keeps kind="conflict"
    "conflict": status.HTTP_400_BAD_REQUEST,
    "server_fault": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

#FastAPI Setup
app = fastapi.FastAPI(title="Slot Swap")


@app.exception_handler(SwapError)
async def swap_error_handler(request: Request, exc: SwapError):
    return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 500), content=exc.to_dict())


# Slot Models
class SlotCreate(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime
    swappable: bool = False

class SlotUpdate(BaseModel):
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[SlotStatus] = None

class SlotOut(BaseModel):
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    owner_id: int
    status: SlotStatus

# Swap Models
class SwapRequestCreate(BaseModel):
    offered_slot_id: str
    target_slot_id: str

class SwapDecision(BaseModel):
    decision: Decision

class SwapRequestOut(BaseModel):
    id: str
    offered_slot_id: str
    target_slot_id: str
    requester_id: int
    target_owner_id: int
    status: SwapStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None
    offered_slot: Optional[SlotOut] = None
    target_slot: Optional[SlotOut] = None
    requester_username: Optional[str] = None
    target_owner_username: Optional[str] = None

class MyRequests(BaseModel):
    incoming: List[SwapRequestOut]
    outgoing: List[SwapRequestOut]


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[fastapi.WebSocket] = []

    async def connect(self, websocket: fastapi.WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: fastapi.WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: str):
        for connection in list(self.active_connections):
            await connection.send_text(message)

manager = ConnectionManager()


@app.get("/api/users/me", response_model=User)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    """
    Get the current authenticated user's profile data.
    """
    return current_user


# Login endpoint
@app.post("/token", response_model=Token)
async def login_for_access_token(response: Response, form_data: OAuth2PasswordRequestForm = Depends()):
    query = users.select().where(users.c.username == form_data.username)
    user_record = await database.fetch_one(query)
    if not user_record or not verify_password(form_data.password, user_record['hashed_password']):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user_record['username']}, expires_delta=access_token_expires
    )

    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        samesite="lax",
    )

    # Also return the token in the body for the WebSocket connection
    return {"access_token": access_token, "token_type": "bearer"}


@app.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate):
    # Check if user already exists
    query = users.select().where(users.c.username == user.username)
    if await database.fetch_one(query):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already registered."
        )
    query = users.select().where(users.c.email == user.email)
    if await database.fetch_one(query):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered."
        )

    await create_user(user)
    return {"message": "User created successfully."}


# Slot Endpoints
@app.post("/api/slots", response_model=SlotOut, status_code=status.HTTP_201_CREATED)
async def create_slot(slot: SlotCreate, current_user: User = Depends(get_current_active_user)):
    created = await slot_service.create_slot(
        current_user.id, slot.title, slot.start_time, slot.end_time, swappable=slot.swappable
    )
    await manager.broadcast(json.dumps({"type": "slots_updated"}))
    return asdict(created)

@app.get("/api/slots/me", response_model=List[SlotOut])
async def list_my_slots(current_user: User = Depends(get_current_active_user)):
    return [asdict(s) for s in await slot_service.list_my_slots(current_user.id)]

# Marketplace: swappable slots from other users
@app.get("/api/slots/swappable", response_model=List[SlotOut])
async def list_swappable_slots(current_user: User = Depends(get_current_active_user)):
    return [asdict(s) for s in await slot_service.list_marketplace(current_user.id)]

@app.put("/api/slots/{slot_id}", response_model=SlotOut)
async def update_slot(slot_id: str, update: SlotUpdate, current_user: User = Depends(get_current_active_user)):
    slot = await slot_service.edit_slot(
        current_user.id, slot_id, title=update.title, start_time=update.start_time,
        end_time=update.end_time, status=update.status,
    )
    await manager.broadcast(json.dumps({"type": "slots_updated"}))
    return asdict(slot)

@app.delete("/api/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(slot_id: str, current_user: User = Depends(get_current_active_user)):
    await slot_service.delete_slot(current_user.id, slot_id)
    await manager.broadcast(json.dumps({"type": "slots_updated"}))


# Swap Endpoints
@app.post("/api/swaps/swap-request", response_model=SwapRequestOut, status_code=status.HTTP_201_CREATED)
async def create_swap_request(body: SwapRequestCreate, current_user: User = Depends(get_current_active_user)):
    swap = await coordinator.propose_swap(current_user.id, body.offered_slot_id, body.target_slot_id)
    await manager.broadcast(json.dumps({"type": "requests_updated"}))
    return asdict(swap)

@app.post("/api/swaps/swap-response/{swap_id}", response_model=SwapRequestOut)
async def respond_to_swap_request(swap_id: str, body: SwapDecision,
                                  current_user: User = Depends(get_current_active_user)):
    swap = await resolver.resolve_swap(current_user.id, swap_id, body.decision)
    await manager.broadcast(json.dumps({"type": "requests_updated"}))
    await manager.broadcast(json.dumps({"type": "slots_updated"}))
    return asdict(swap)


async def _username(user_id: int) -> Optional[str]:
    record = await database.fetch_one(users.select().where(users.c.id == user_id))
    return record["username"] if record else None

async def _with_details(swap) -> dict:
    data = asdict(swap)
    for key, slot_id in (("offered_slot", swap.offered_slot_id), ("target_slot", swap.target_slot_id)):
        try:
            data[key] = asdict(await slot_store.get(slot_id))
        except NotFound:
            data[key] = None
    data["requester_username"] = await _username(swap.requester_id)
    data["target_owner_username"] = await _username(swap.target_owner_id)
    return data

@app.get("/api/swaps/my-requests", response_model=MyRequests)
async def my_requests(direction: Direction = Query(Direction.ALL),
                      current_user: User = Depends(get_current_active_user)):
    found = [swap async for swap in request_queries.list_requests(current_user.id, direction)]
    incoming, outgoing = [], []
    for swap in found:
        if swap.target_owner_id == current_user.id:
            incoming.append(await _with_details(swap))
        if swap.requester_id == current_user.id:
            outgoing.append(await _with_details(swap))
    return {"incoming": incoming, "outgoing": outgoing}


@app.websocket("/ws")
async def websocket_endpoint(websocket: fastapi.WebSocket, token: str = Query(None)):
    """
    Pushes change notifications to an authenticated client.
    """
    if token is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        current_user = await decode_token_and_get_user(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket)
    await websocket.send_text(json.dumps({
        "type": "auth_success",
        "data": {"id": current_user.id, "username": current_user.username}
    }))
    try:
        while True:
            # Clients only listen; anything they send is ignored.
            await websocket.receive_text()
    except fastapi.WebSocketDisconnect:
        manager.disconnect(websocket)


@app.on_event("startup")
async def startup():
    await database.connect()
    # Create tables if they don't exist
    metadata.create_all(bind=engine)
    logger.info("🚀 Slot swap service started")


@app.on_event("shutdown")
async def shutdown():
    await database.disconnect()
