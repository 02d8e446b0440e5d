from ..config import AnalysisConfig
from ..core.errors import AnalysisError
from ..core.llm import LLMFactory
from ..core.llm_observability import LLMObservability
from ..core.logging import call_logger, get_logger
from ..interfaces import AbstractAnalysisService
from ..schemas.analysis import AnalysisResult

log = get_logger("analysis")

SYSTEM_PROMPT = (
    "You are an expert sales coach and CRM analyst. Analyze the sales call transcript "
    "and extract: a concise summary (2-3 sentences); sentiment with a label, confidence, "
    "emotion tags and a score from -1 to 1; customer needs, objections, opportunities, "
    "concerns, key quotes, competitors mentioned and deal indicators; action items with "
    "priority, confidence, category and due date when stated; next steps; key takeaways; "
    "the probability (0-100) that the deal closes; the urgency of follow-up; and the deal "
    "stage. Only report what the transcript supports."
)


class AnalysisService(AbstractAnalysisService):
    def __init__(self, config: AnalysisConfig | None = None):
        self.config = config or AnalysisConfig()
        self.client = LLMFactory.get_client()
        self.model = LLMFactory.get_model_name()
        self.observability = LLMObservability()

    async def analyze(self, transcript_text: str, call_id: str | None = None) -> AnalysisResult:
        """
        Extracts summary, sentiment, insights and action items from a call transcript.
        Malformed or failed responses are retried up to `max_attempts` in total, after
        which AnalysisError is raised and the caller decides how to degrade.
        """
        clog = call_logger(log, call_id)

        if len(transcript_text.strip()) < self.config.min_transcript_chars:
            clog.info("Transcript too short, skipping analysis")
            return AnalysisResult.placeholder("Transcript too short for analysis.")

        if not LLMFactory.is_configured():
            raise AnalysisError("LLM not configured", {"call_id": call_id})

        last_error: Exception | None = None
        for attempt in range(1, self.config.max_attempts + 1):
            span = self.observability.start(call_id, self.model, transcript_text, attempt)
            try:
                result = await self.client.chat.completions.create(
                    model=self.model,
                    response_model=AnalysisResult,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": f"TRANSCRIPT:\n{transcript_text}"},
                    ],
                    temperature=0.3,
                    max_retries=1,
                )
            except Exception as exc:
                self.observability.finish_error(span, exc)
                last_error = exc
                continue

            self.observability.finish_success(span, result.model_dump())
            return result

        raise AnalysisError(
            f"Analysis failed after {self.config.max_attempts} attempts: {last_error}",
            {"call_id": call_id},
        ) from last_error
