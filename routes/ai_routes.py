"""
AI study routes under /api/ai. All endpoints require a session.

The ``{source_id}`` path parameter names either a text note or an audio note.
"""

from fastapi import APIRouter, Depends

from dependencies import get_current_user, get_study_service
from schemas.dto.requests.study import AskRequest, GenerateMaterialsRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.study import (
    AnswerResponse,
    GeneratedMaterialsResponse,
    MarkdownResponse,
    MindmapResponse,
    StudyMaterialResponse,
)
from schemas.models.user import UserDoc
from services.study_service import StudyService

router = APIRouter(
    prefix="/api/ai",
    tags=["ai"],
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.post("/generate", response_model=GeneratedMaterialsResponse)
async def generate_materials(
    body: GenerateMaterialsRequest,
    user: UserDoc = Depends(get_current_user),
    study: StudyService = Depends(get_study_service),
) -> GeneratedMaterialsResponse:
    material = await study.generate(user, body.note_id, body.actions)
    return GeneratedMaterialsResponse.from_doc(material)


@router.get("/material/{source_id}", response_model=StudyMaterialResponse)
async def get_study_material(
    source_id: str,
    user: UserDoc = Depends(get_current_user),
    study: StudyService = Depends(get_study_service),
) -> StudyMaterialResponse:
    return StudyMaterialResponse.from_doc(await study.get_material(user, source_id))


@router.post("/ask", response_model=AnswerResponse)
async def ask_about_note(
    body: AskRequest,
    user: UserDoc = Depends(get_current_user),
    study: StudyService = Depends(get_study_service),
) -> AnswerResponse:
    return AnswerResponse(answer=await study.ask(user, body.note_id, body.question))


@router.post("/mindmap/{source_id}", response_model=MindmapResponse)
async def generate_mindmap(
    source_id: str,
    user: UserDoc = Depends(get_current_user),
    study: StudyService = Depends(get_study_service),
) -> MindmapResponse:
    return MindmapResponse(mindmap=await study.mindmap(user, source_id))


@router.post("/markdown/{source_id}", response_model=MarkdownResponse)
async def generate_markdown(
    source_id: str,
    user: UserDoc = Depends(get_current_user),
    study: StudyService = Depends(get_study_service),
) -> MarkdownResponse:
    return MarkdownResponse(markdown=await study.markdown(user, source_id))
