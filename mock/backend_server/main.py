from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Backend Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/backend_stub") if os.path.exists("/backend_stub") else Path(__file__).resolve().parents[2] / "backend_stub"


def _load(name: str):
    file = DATA_DIR / name
    if not file.exists():
        raise HTTPException(status_code=404, detail="not found")
    return json.loads(file.read_text())


@app.get("/health")
def health(): return {"status": "ok"}


@app.get("/api/members")
def list_members(collector: str):
    members = [m for m in _load("members.json") if m.get("collector") == collector]
    return JSONResponse(content={"data": members})


@app.get("/api/members/{member_id}")
def get_member(member_id: str):
    for member in _load("members.json"):
        if member["_id"] == member_id:
            return JSONResponse(content={"data": member})
    raise HTTPException(status_code=404, detail="member not found")


@app.get("/api/installments/member/{member_id}")
def get_installments(member_id: str):
    return JSONResponse(content={"data": _load(f"installments_{member_id}.json")})


@app.get("/api/installments/active-sales/{member_id}")
def get_active_sales(member_id: str):
    file = DATA_DIR / f"sales_{member_id}.json"
    # Legacy members have no sale feed
    return JSONResponse(content={"data": json.loads(file.read_text()) if file.exists() else []})
