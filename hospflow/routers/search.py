import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from hospflow.services import patients
from hospflow.services.projection import SearchDebouncer, SearchQuery, View

logger = logging.getLogger(__name__)
router = APIRouter()


def _parse_query(data: object) -> SearchQuery:
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return SearchQuery(
        q=str(data.get("q") or ""),
        view=View(data.get("view") or View.ACTIVE.value),
        specialty=data.get("specialty") or None,
    )


@router.websocket("/ws/search")
async def search_endpoint(websocket: WebSocket):
    """Live patient search: each message is a query, results come back once typing pauses."""
    await websocket.accept()

    async def send_results(query: SearchQuery) -> None:
        results = await patients.list_patients(query.view, query.q, query.specialty)
        await websocket.send_json({
            "type": "results",
            "q": query.q,
            "view": query.view.value,
            "specialty": query.specialty,
            "patients": [p.model_dump(mode="json") for p in results],
        })

    debouncer = SearchDebouncer(send_results)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                query = _parse_query(json.loads(raw))
            except ValueError as exc:
                await websocket.send_json({"type": "error", "message": str(exc)})
                continue
            debouncer.submit(query)
    except WebSocketDisconnect:
        logger.debug("Search client disconnected")
    finally:
        await debouncer.close()
