from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import Any, Dict, List

from ..errors import StateStoreError

router = APIRouter()


class ReflectorMappingResponse(BaseModel):
    """Persisted container -> IFB device record"""
    container: str
    reflector: str


@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "tcshaper"}


@router.get("/status")
def get_status(request: Request) -> Dict[str, Any]:
    """Synchronizer state and running totals"""
    return request.app.state.synchronizer.status()


@router.get("/reflectors", response_model=List[ReflectorMappingResponse])
def list_reflectors(request: Request):
    """Reflector devices currently recorded per container"""
    try:
        mappings = request.app.state.store.list()
    except StateStoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to read reflectors: {str(e)}")

    return [
        ReflectorMappingResponse(container=name, reflector=reflector)
        for name, reflector in mappings.items()
    ]
