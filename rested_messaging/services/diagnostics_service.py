import asyncio
import logging
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase


logger = logging.getLogger(__name__)

TOKEN_FIELDS = {"fcmToken", "playerID", "deviceToken", "pushToken", "token"}
VISIBLE_TOKEN_CHARS = 12


def _jsonable(value: Any, key: str = "") -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v, key) for v in value]
    if isinstance(value, str):
        if key in TOKEN_FIELDS and len(value) > VISIBLE_TOKEN_CHARS:
            return value[:VISIBLE_TOKEN_CHARS] + "..."
        return value
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


async def _explore(db: AsyncIOMotorDatabase, report: Dict[str, Any]) -> None:
    names = await db.list_collection_names()
    for name in sorted(names):
        try:
            report["collections"][name] = await db[name].count_documents({})
            sample = await db[name].find_one()
            if sample:
                report["sampleDocuments"][name] = _jsonable(sample)
        except Exception as exc:
            report["errors"].append(f"{name}: {exc}")


async def explore_token_storage(project, timeout: float = 10.0) -> Dict[str, Any]:
    """Dump collection names, sizes and one sample per collection of a legacy store."""
    if project is None or project.db is None:
        raise ValueError("Legacy project not configured")

    report: Dict[str, Any] = {
        "project": project.name,
        "databaseType": "mongodb",
        "collections": {},
        "sampleDocuments": {},
        "errors": [],
    }
    try:
        await asyncio.wait_for(_explore(project.db, report), timeout)
    except asyncio.TimeoutError:
        report["errors"].append("Timeout: database exploration took too long")
    except Exception as exc:
        logger.exception("Exploring %s token storage failed", project.name)
        report["errors"].append(str(exc))
    return report
