# dreamlog/api/endpoints/completions.py
"""
AI endpoints. Each one proxies the completion service; /analyze may first
refresh the rolling summary of the block it is asked about.
"""
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends

from dreamlog.api.deps import (
    get_active_user,
    get_completion_client,
    get_dialog_repository,
    get_dream_repository,
    json_body,
    require_json_content,
)
from dreamlog.core.errors import not_found, validation_error
from dreamlog.schemas.completion import (
    AnalyzeRequest,
    AutoSummaryRequest,
    AutoSummaryResponse,
    FindSimilarRequest,
    FindSimilarResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from dreamlog.schemas.dialog import (
    InterpretationResponse,
    InterpretBlockRequest,
    InterpretBlockResponse,
    InterpretFinalRequest,
)
from dreamlog.schemas.user import UserRecord
from dreamlog.services import completion
from dreamlog.services.completion import CompletionClient
from dreamlog.services.dialog_repository import DialogRepository
from dreamlog.services.dream_repository import DreamRepository
from dreamlog.services.rolling_summary import summary_for_analysis

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
        user: UserRecord = Depends(get_active_user),
        body: SummarizeRequest = Depends(json_body(SummarizeRequest)),
        client: CompletionClient = Depends(get_completion_client),
):
    summary = await completion.summarize(
        client,
        [turn.as_message() for turn in body.history],
        block_text=body.block_text,
        existing_summary=body.existing_summary,
    )
    return SummarizeResponse(summary=summary)


@router.post("/analyze")
async def analyze(
        user: UserRecord = Depends(get_active_user),
        _json: None = Depends(require_json_content),
        body: AnalyzeRequest = Depends(json_body(AnalyzeRequest)),
        client: CompletionClient = Depends(get_completion_client),
        repo: DreamRepository = Depends(get_dream_repository),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    auto_summary = None
    dream_summary = body.dream_summary
    if body.dream_id:
        dream = await repo.get(user.email, body.dream_id)
        if dream is not None:
            auto_summary = dream.auto_summary
            dream_summary = dream_summary or dream.dream_summary

    rolling_summary = body.rolling_summary
    if body.dream_id and body.block_id:
        stored = await summary_for_analysis(
            client, dialogs, user.email, body.dream_id, body.block_id, body.block_text
        )
        rolling_summary = stored or rolling_summary

    messages = completion.build_analyze_messages(
        body.block_text,
        last_turns=[turn.as_message() for turn in body.last_turns],
        rolling_summary=rolling_summary,
        extra_system_prompt=body.extra_system_prompt,
        dream_summary=dream_summary,
        auto_summary=auto_summary,
        block_id=body.block_id,
    )
    return await completion.analyze(client, messages)


@router.post("/find_similar", response_model=FindSimilarResponse)
async def find_similar(
        user: UserRecord = Depends(get_active_user),
        body: FindSimilarRequest = Depends(json_body(FindSimilarRequest)),
        client: CompletionClient = Depends(get_completion_client),
):
    if not body.dream_text or not body.dream_text.strip():
        raise validation_error("No dreamText")

    similar = await completion.find_similar(
        client,
        body.dream_text,
        global_final_interpretation=body.global_final_interpretation,
        block_interpretations=body.block_interpretations,
    )
    return FindSimilarResponse(similar=similar)


@router.post("/generate_auto_summary", response_model=AutoSummaryResponse, response_model_by_alias=True)
async def generate_auto_summary(
        user: UserRecord = Depends(get_active_user),
        body: AutoSummaryRequest = Depends(json_body(AutoSummaryRequest)),
        client: CompletionClient = Depends(get_completion_client),
        repo: DreamRepository = Depends(get_dream_repository),
):
    if not body.dream_id or not body.dream_text:
        raise validation_error("dreamId and dreamText are required")

    dream = await repo.get(user.email, body.dream_id)
    if dream is None:
        raise not_found("Dream not found")

    if dream.auto_summary and dream.dream_text == body.dream_text:
        return AutoSummaryResponse(auto_summary=dream.auto_summary)

    summary = await completion.auto_summary(client, body.dream_text)
    await repo.set_auto_summary(user.email, body.dream_id, summary)
    logger.info("Stored auto summary for dream %s", body.dream_id)
    return AutoSummaryResponse(auto_summary=summary)


async def _dream_digests(repo: DreamRepository, user: str, dream_id: Optional[str]) -> Tuple[str, str]:
    if not dream_id:
        return "", ""
    dream = await repo.get(user, dream_id)
    if dream is None:
        return "", ""
    return dream.auto_summary or "", dream.dream_summary or ""


@router.post("/interpret_block", response_model=InterpretBlockResponse, response_model_by_alias=True)
async def interpret_block(
        user: UserRecord = Depends(get_active_user),
        body: InterpretBlockRequest = Depends(json_body(InterpretBlockRequest)),
        client: CompletionClient = Depends(get_completion_client),
        repo: DreamRepository = Depends(get_dream_repository),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    if not body.block_text:
        raise validation_error("No blockText")

    auto_summary, dream_summary = await _dream_digests(repo, user.email, body.dream_id)
    rolling_summary, recent_turns = "", []
    if body.dream_id and body.block_id:
        rolling_summary, recent_turns = await dialogs.unprocessed(user.email, body.dream_id, body.block_id)

    messages = completion.build_block_interpretation_messages(
        body.block_text,
        auto_summary=auto_summary,
        dream_summary=dream_summary,
        rolling_summary=rolling_summary,
        recent_turns=recent_turns,
    )
    interpretation = await completion.interpret(client, messages, max_tokens=600)

    if body.dream_id and body.block_id and interpretation:
        await dialogs.append_message(
            user.email,
            body.dream_id,
            body.block_id,
            "assistant",
            interpretation,
            meta={"kind": "block_interpretation"},
        )
        await repo.set_block_interpretation(user.email, body.dream_id, body.block_id, interpretation)
        logger.info("Stored interpretation of block %s in dream %s", body.block_id, body.dream_id)

    return InterpretBlockResponse(interpretation=interpretation)


@router.post("/interpret_final", response_model=InterpretationResponse)
async def interpret_final(
        user: UserRecord = Depends(get_active_user),
        body: InterpretFinalRequest = Depends(json_body(InterpretFinalRequest)),
        client: CompletionClient = Depends(get_completion_client),
        repo: DreamRepository = Depends(get_dream_repository),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    if not body.dream_text:
        raise validation_error("No dreamText")

    auto_summary, dream_summary = await _dream_digests(repo, user.email, body.dream_id)
    blocks_context = []
    if body.dream_id:
        for index, block in enumerate(body.blocks, start=1):
            rolling_summary, recent_turns = "", []
            if block.id is not None:
                rolling_summary, recent_turns = await dialogs.unprocessed(user.email, body.dream_id, str(block.id))
            blocks_context.append(
                completion.format_block_context(index, block.text, rolling_summary, recent_turns)
            )

    messages = completion.build_final_interpretation_messages(
        body.dream_text,
        auto_summary=auto_summary,
        dream_summary=dream_summary,
        blocks_context=blocks_context,
    )
    interpretation = await completion.interpret(client, messages, max_tokens=800)

    if body.dream_id and interpretation:
        await repo.update(user.email, body.dream_id, {"global_final_interpretation": interpretation})
        logger.info("Stored final interpretation for dream %s", body.dream_id)

    return InterpretationResponse(interpretation=interpretation)
