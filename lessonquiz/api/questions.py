from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.auth import TokenData, get_current_user
from lessonquiz.core.database import get_db
from lessonquiz.models.schemas import HintOut
from lessonquiz.services.repository import QuestionRepository

router = APIRouter()

NO_HINT = "No hint available"


@router.get("/{question_id}/hint", response_model=HintOut)
async def get_hint(question_id: str, user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    question = await QuestionRepository(db).get_question(question_id)
    return HintOut(question_id=question.id, hint=question.hint or question.explanation or NO_HINT)
