import logging
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from smashweeper.config import MAX_COLS, MAX_ROWS, MIN_COLS, MIN_ROWS, GameConfig, Settings
from smashweeper.store import InMemoryRoundStore

API_BASE = "/api/smashweeper"


class StartBody(BaseModel):
    rows: int = Field(..., ge=MIN_ROWS, le=MAX_ROWS)
    cols: int = Field(..., ge=MIN_COLS, le=MAX_COLS)
    mines: int = Field(..., ge=1)
    game_mode: Optional[str] = None
    pattern: Optional[str] = None
    rng_seed: Optional[int] = None


class MoveBody(BaseModel):
    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)


def create_app(store: Optional[InMemoryRoundStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env(Path(".env.local"))
    app = FastAPI(title="Smashweeper Service", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    app.state.store = store or InMemoryRoundStore()
    app.state.settings = settings
    logger = logging.getLogger("uvicorn.error")

    @app.on_event("startup")
    async def _log_settings():
        modes = app.state.store.modes
        logger.info(
            f"[smashweeper] modes={','.join(modes.ids())} patterns={','.join(modes.patterns.ids())} "
            f"default_mode={settings.default_mode_id} default_pattern={settings.default_pattern_id} "
            f"allow_anon={int(settings.allow_anon)}"
        )

    def get_user_id(req: Request) -> str:
        uid = req.headers.get("X-User-Id")
        if uid:
            return uid
        if settings.allow_anon:
            return settings.default_user_id
        logger.warning(f"[smashweeper] get_user_id missing user id allow_anon={int(settings.allow_anon)}")
        raise HTTPException(status_code=401, detail="missing user id")

    def _snapshot(rnd, user_id: str):
        return rnd.snapshot() | {"game_id": user_id}

    @app.post(f"{API_BASE}/start")
    def start_round(body: StartBody, user_id: str = Depends(get_user_id)):
        try:
            config = GameConfig(
                rows=body.rows,
                cols=body.cols,
                mine_count=body.mines,
                game_mode_id=body.game_mode or settings.default_mode_id,
                pattern_id=body.pattern or settings.default_pattern_id,
            )
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            rnd = app.state.store.start_round(user_id, config, rng_seed=body.rng_seed)
        except ValueError as e:
            if str(e) == "active_round_exists":
                raise HTTPException(status_code=409, detail="active round exists")
            raise HTTPException(status_code=400, detail=str(e))
        logger.info(
            f"[smashweeper] start user_id={user_id} rows={config.rows} cols={config.cols} "
            f"mines={config.mine_count} mode={rnd.mode.mode_id} pattern={rnd.mode.pattern.pattern_id}"
        )
        return _snapshot(rnd, user_id)

    @app.get(f"{API_BASE}/state")
    def get_state(user_id: str = Depends(get_user_id)):
        rnd = app.state.store.get_round(user_id)
        if rnd is None:
            raise HTTPException(status_code=404, detail="no round")
        return _snapshot(rnd, user_id)

    @app.post(f"{API_BASE}/reveal")
    def reveal(body: MoveBody, user_id: str = Depends(get_user_id)):
        try:
            rnd, result = app.state.store.reveal(user_id, body.row, body.col)
        except KeyError:
            raise HTTPException(status_code=404, detail="no round")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        resp = _snapshot(rnd, user_id)
        resp["last_move"] = {
            "row": body.row,
            "col": body.col,
            "hit_mine": bool(result["hit_mine"]),
            "cleared_cells": int(result["cleared_cells"]),
        }
        return resp

    @app.post(f"{API_BASE}/flag")
    def flag(body: MoveBody, user_id: str = Depends(get_user_id)):
        try:
            rnd, _result = app.state.store.flag(user_id, body.row, body.col)
        except KeyError:
            raise HTTPException(status_code=404, detail="no round")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _snapshot(rnd, user_id)

    @app.post(f"{API_BASE}/reset")
    def reset(user_id: str = Depends(get_user_id)):
        try:
            rnd = app.state.store.reset(user_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="no round")
        return _snapshot(rnd, user_id)

    @app.post(f"{API_BASE}/abandon")
    def abandon(user_id: str = Depends(get_user_id)):
        try:
            snapshot = app.state.store.abandon(user_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="no round")
        logger.info(f"[smashweeper] abandon user_id={user_id} status={snapshot['status']}")
        return snapshot | {"game_id": user_id}

    @app.get(f"{API_BASE}/modes")
    def list_modes(multiplayer: bool = False):
        modes = app.state.store.modes
        entries = modes.multiplayer() if multiplayer else modes.singleplayer()
        return [
            {
                "id": d.id,
                "translation_key": d.translation_key,
                "order": d.order,
                "requires_special_logic": d.requires_special_logic,
            }
            for d in entries
        ]

    @app.get(f"{API_BASE}/patterns")
    def list_patterns():
        patterns = app.state.store.modes.patterns
        return [
            {"id": meta.id, "translation_key": meta.translation_key, "order": meta.order}
            for _pattern, meta in patterns.all()
        ]

    return app


app = create_app()
