from fastapi import HTTPException, Request, status

from resumind.core.platform import Platform


def get_platform(request: Request) -> Platform:
    platform = getattr(request.app.state, "platform", None)
    if platform is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready yet. Please wait and try again.",
        )
    return platform
