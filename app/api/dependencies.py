from fastapi import HTTPException, Request

from app.core.runtime import KeeperRuntime


def get_runtime(request: Request) -> KeeperRuntime:
    runtime = getattr(request.app.state, "keeper", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Keeper not initialized")
    return runtime
