"""
routers/grammar.py

POST /api/grammar        → check one text
POST /api/grammar/batch  → check up to 20 texts, one after another
"""

from fastapi import APIRouter, Depends

from bhasha.core.logger import get_logger
from bhasha.core.validators import validate_batch_grammar_check, validate_check_grammar
from bhasha.models.request import BatchGrammarRequest, GrammarRequest
from bhasha.routers.deps import get_grammar_service, verify_api_key
from bhasha.services.grammar_service import GrammarService
from bhasha.services.normalizer import success

logger = get_logger(__name__)
router = APIRouter(prefix="/grammar", tags=["grammar"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def check_grammar(
    body: GrammarRequest,
    grammar: GrammarService = Depends(get_grammar_service),
):
    req = validate_check_grammar(body.text, body.language, body.check_type).unwrap()
    result = await grammar.check(req)
    return success(result, "Grammar check completed successfully")


@router.post("/batch")
async def check_batch(
    body: BatchGrammarRequest,
    grammar: GrammarService = Depends(get_grammar_service),
):
    req = validate_batch_grammar_check(body.texts, body.language, body.check_type).unwrap()
    logger.info(f"Batch grammar check: {len(req.texts)} texts")
    result = await grammar.check_batch(req)
    return success(result, "Batch grammar check completed successfully")
