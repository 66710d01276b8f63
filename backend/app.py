import logging
import os

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

# Motor for MongoDB
from motor.motor_asyncio import AsyncIOMotorClient

from common.framing import ERROR, FrameError, decode_frame

from . import accounts
from .config import Settings
from .errors import NotFoundError, StorageError
from .hub import ChatHub
from .identity import MemoryIdentityStore, MongoIdentityStore

log = logging.getLogger('potencia.app')


def build_store(app: FastAPI, settings: Settings):
    if settings.identity_backend == 'memory':
        log.warning('using the in-memory identity store; users vanish on restart')
        return MemoryIdentityStore()
    app.state.mongo_client = AsyncIOMotorClient(settings.mongo_url)
    return MongoIdentityStore(app.state.mongo_client[settings.mongo_db]['users'])


def create_app(settings: Settings = None, store=None) -> FastAPI:
    """Build the app. Pass a store to skip MongoDB entirely (tests, demos)."""
    settings = settings or Settings.from_env()
    app = FastAPI(title='Potencia chat')
    app.state.settings = settings
    app.state.store = store
    app.state.mongo_client = None
    app.state.hub = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.on_event('startup')
    async def startup_event():
        if app.state.store is None:
            app.state.store = build_store(app, settings)
        try:
            await app.state.store.ensure_indexes()
        except StorageError:
            log.error('identity store unavailable at startup; requests will fail until it recovers')
        app.state.hub = ChatHub(app.state.store, settings.code_alphabet,
                                settings.code_length, settings.code_attempts)
        log.info('chat backend ready (store: %s)', type(app.state.store).__name__)

    @app.on_event('shutdown')
    async def shutdown_event():
        if app.state.mongo_client is not None:
            app.state.mongo_client.close()

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return JSONResponse({'success': False, 'message': 'server error'}, status_code=500)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse({'success': False, 'message': exc.message}, status_code=404)

    app.include_router(accounts.router)

    @app.get('/health')
    async def health():
        hub = app.state.hub
        return {'status': 'ok', 'connections': len(hub.connections) if hub else 0}

    @app.get('/api/online')
    async def online_users():
        hub = app.state.hub
        return JSONResponse({'online': hub.presence.online_usernames() if hub else []})

    @app.websocket('/ws')
    async def websocket_endpoint(websocket: WebSocket):
        hub: ChatHub = app.state.hub
        await websocket.accept()
        conn = await hub.connect(websocket)
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    frame = decode_frame(text)
                except FrameError as e:
                    await conn.send(ERROR, {'why': str(e)})
                    continue
                await hub.handle_frame(conn, frame)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.disconnect(conn)

    if os.path.isdir(settings.static_dir):
        app.mount('/', StaticFiles(directory=settings.static_dir, html=True), name='static')
    else:
        @app.get('/')
        async def index():
            return HTMLResponse('<h3>Potencia chat backend running. Connect via WebSocket at /ws</h3>')

    return app


app = create_app()
