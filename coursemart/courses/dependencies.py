"""FastAPI dependencies for course management.

Provides dependency injection for:
- Course and module services
- Reading an uploaded course image
"""

from typing import Annotated

from fastapi import Depends, File, HTTPException, Request, UploadFile, status

from coursemart.courses.service import CourseService, ModuleService
from coursemart.storage.service import ImageUpload


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service unavailable",
        )
    return app_state.course_service


async def get_module_service(request: Request) -> ModuleService:
    """Get module service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "module_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Module service unavailable",
        )
    return app_state.module_service


async def read_image_upload(
    image: Annotated[UploadFile | None, File(description="Course image")] = None,
) -> ImageUpload | None:
    """Read the optional multipart image into memory."""
    if image is None or not image.filename:
        return None
    content = await image.read()
    if not content:
        return None
    return ImageUpload(
        content=content,
        content_type=image.content_type or "application/octet-stream",
        filename=image.filename,
    )


# Type aliases for dependency injection
CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
ModuleServiceDep = Annotated[ModuleService, Depends(get_module_service)]
ImageUploadDep = Annotated[ImageUpload | None, Depends(read_image_upload)]
