"""Course management API endpoints.

Provides routes for:
- Courses: public listing, CRUD for the owning administrator
- Modules: CRUD for the owning administrator, listing for learners who bought the course
- Account course lists: purchased courses (learner), created courses (administrator)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Form, Query, status

from coursemart.auth.dependencies import CurrentAdministrator, CurrentLearner
from coursemart.auth.schemas import MessageResponse
from coursemart.core.errors import NotFoundError
from coursemart.courses.dependencies import (
    CourseServiceDep,
    ImageUploadDep,
    ModuleServiceDep,
)
from coursemart.courses.schemas import (
    CourseCreateForm,
    CourseListResponse,
    CourseResponse,
    CourseUpdateForm,
    CreateModuleRequest,
    ModuleListResponse,
    ModuleResponse,
    UpdateModuleRequest,
)
from coursemart.payments.dependencies import PaymentServiceDep


# ==============================================================================
# Courses Router
# ==============================================================================

router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_courses.get("", response_model=CourseListResponse, summary="List courses")
async def list_courses(
    course_service: CourseServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 100,
) -> CourseListResponse:
    """List all courses (public)."""
    courses = await course_service.list_courses(limit=limit)
    return CourseListResponse.from_entities(courses)


@router_courses.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course",
    responses={404: {"description": "Course not found"}},
)
async def get_course(course_id: UUID, course_service: CourseServiceDep) -> CourseResponse:
    course = await course_service.require_course(course_id)
    return CourseResponse.from_entity(course)


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
    responses={
        422: {"description": "Invalid input, image or image link required"},
        502: {"description": "Image upload failed"},
    },
)
async def create_course(
    data: Annotated[CourseCreateForm, Form()],
    image: ImageUploadDep,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
) -> CourseResponse:
    """Create a course owned by the calling administrator.

    Send the image as a multipart file, or an http(s) image_link.
    """
    course = await course_service.create_course(admin.id, data, image)
    return CourseResponse.from_entity(course)


@router_courses.patch(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
    responses={
        403: {"description": "Not the course owner"},
        404: {"description": "Course not found"},
    },
)
async def update_course(
    course_id: UUID,
    data: Annotated[CourseUpdateForm, Form()],
    image: ImageUploadDep,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
) -> CourseResponse:
    course = await course_service.update_course(course_id, admin.id, data, image)
    return CourseResponse.from_entity(course)


@router_courses.delete(
    "/{course_id}",
    response_model=MessageResponse,
    summary="Delete course",
    responses={
        403: {"description": "Not the course owner"},
        404: {"description": "Course not found"},
    },
)
async def delete_course(
    course_id: UUID,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
) -> MessageResponse:
    """Delete a course and its modules."""
    await course_service.delete_course(course_id, admin.id)
    return MessageResponse(message="Course deleted")


# ==============================================================================
# Modules Router
# ==============================================================================

router_modules = APIRouter(prefix="/v1/modules", tags=["modules"])


@router_modules.post(
    "/course/{course_id}",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create module",
)
async def create_module(
    course_id: UUID,
    data: CreateModuleRequest,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
    module_service: ModuleServiceDep,
) -> ModuleResponse:
    course = await course_service.require_owned_course(course_id, admin.id)
    module = await module_service.create_module(course.id, admin.id, data)
    return ModuleResponse.from_entity(module)


@router_modules.get(
    "/course/{course_id}/admin",
    response_model=ModuleListResponse,
    summary="List modules (owner)",
)
async def list_modules_for_owner(
    course_id: UUID,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
    module_service: ModuleServiceDep,
) -> ModuleListResponse:
    course = await course_service.require_owned_course(course_id, admin.id)
    modules = await module_service.list_course_modules(course.id)
    return ModuleListResponse(
        course_id=course.id,
        items=[ModuleResponse.from_entity(m) for m in modules],
    )


@router_modules.get(
    "/course/{course_id}",
    response_model=ModuleListResponse,
    summary="List modules (learner)",
    responses={403: {"description": "Course not purchased"}},
)
async def list_modules_for_learner(
    course_id: UUID,
    learner: CurrentLearner,
    course_service: CourseServiceDep,
    module_service: ModuleServiceDep,
    payment_service: PaymentServiceDep,
) -> ModuleListResponse:
    """Modules of a purchased course in creation order."""
    course = await course_service.require_course(course_id)
    await payment_service.require_purchase(learner.id, course.id)
    modules = await module_service.list_course_modules(course.id)
    return ModuleListResponse(
        course_id=course.id,
        items=[ModuleResponse.from_entity(m) for m in modules],
    )


@router_modules.patch("/{module_id}", response_model=ModuleResponse, summary="Update module")
async def update_module(
    module_id: UUID,
    data: UpdateModuleRequest,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
    module_service: ModuleServiceDep,
) -> ModuleResponse:
    module = await module_service.require_module(module_id)
    await course_service.require_owned_course(module.course_id, admin.id)
    module = await module_service.update_module(module, data)
    return ModuleResponse.from_entity(module)


@router_modules.delete("/{module_id}", response_model=MessageResponse, summary="Delete module")
async def delete_module(
    module_id: UUID,
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
    module_service: ModuleServiceDep,
) -> MessageResponse:
    module = await module_service.require_module(module_id)
    await course_service.require_owned_course(module.course_id, admin.id)
    await module_service.delete_module(module)
    return MessageResponse(message="Module deleted")


# ==============================================================================
# Account Course Lists
# ==============================================================================

router_learner_courses = APIRouter(prefix="/v1/users", tags=["learners"])
router_admin_courses = APIRouter(prefix="/v1/admin", tags=["administrators"])


@router_learner_courses.get(
    "/purchased",
    response_model=CourseListResponse,
    summary="Purchased courses",
    responses={404: {"description": "No purchased courses"}},
)
async def list_purchased_courses(
    learner: CurrentLearner,
    course_service: CourseServiceDep,
    payment_service: PaymentServiceDep,
) -> CourseListResponse:
    """Courses the learner has a successful payment for."""
    course_ids = await payment_service.purchased_course_ids(learner.id)
    courses = await course_service.get_courses(course_ids)
    if not courses:
        raise NotFoundError("No purchased courses found", "no_purchased_courses")
    return CourseListResponse.from_entities(courses)


@router_admin_courses.get(
    "/courses",
    response_model=CourseListResponse,
    summary="Created courses",
)
async def list_created_courses(
    admin: CurrentAdministrator,
    course_service: CourseServiceDep,
) -> CourseListResponse:
    """Courses created by the calling administrator, newest first."""
    courses = await course_service.list_courses_by_owner(admin.id)
    return CourseListResponse.from_entities(courses)
