"""Progress API endpoints.

Both routes sit under /v1/modules and require a purchased course.
"""

from uuid import UUID

from fastapi import APIRouter

from coursemart.auth.dependencies import CurrentLearner
from coursemart.courses.dependencies import CourseServiceDep, ModuleServiceDep
from coursemart.payments.dependencies import PaymentServiceDep
from coursemart.progress.dependencies import ProgressServiceDep
from coursemart.progress.schemas import CourseProgressResponse, ToggleModuleResponse


router = APIRouter(prefix="/v1/modules", tags=["progress"])


@router.get(
    "/progress/course/{course_id}",
    response_model=CourseProgressResponse,
    summary="Course progress",
    responses={
        403: {"description": "Course not purchased"},
        404: {"description": "Course not found or has no modules"},
    },
)
async def get_course_progress(
    course_id: UUID,
    learner: CurrentLearner,
    course_service: CourseServiceDep,
    payment_service: PaymentServiceDep,
    progress_service: ProgressServiceDep,
) -> CourseProgressResponse:
    """Per-module completion and overall percentage."""
    course = await course_service.require_course(course_id)
    await payment_service.require_purchase(learner.id, course.id)
    return await progress_service.get_course_progress(learner.id, course.id)


@router.patch(
    "/{module_id}/status",
    response_model=ToggleModuleResponse,
    summary="Toggle module completion",
    responses={
        403: {"description": "Course not purchased"},
        404: {"description": "Module not found"},
    },
)
async def toggle_module_status(
    module_id: UUID,
    learner: CurrentLearner,
    module_service: ModuleServiceDep,
    payment_service: PaymentServiceDep,
    progress_service: ProgressServiceDep,
) -> ToggleModuleResponse:
    """Flip completion: complete becomes incomplete and the other way round."""
    module = await module_service.require_module(module_id)
    await payment_service.require_purchase(learner.id, module.course_id)
    completion = await progress_service.toggle_module_status(learner.id, module)
    return ToggleModuleResponse.from_entity(completion)
