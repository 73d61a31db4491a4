# services/llm_service.py
import asyncio
import json
import logging
from typing import Any, Dict, List, Tuple

import requests

from config import settings
from core.benchmark import build_rebenchmark_results, build_term_results
from core.domain import (
    BenchmarkResult, ChatMessage, ExtractionResult, StandardTerm, UploadedFile,
    WebFinancialMetric, WebFinancials, utc_now
)
from core.enums import ChatRole
from core.exceptions import ExtractionFailure
from core.interfaces import IDocumentTextExtractor, IExtractionService

logger = logging.getLogger(settings.LOGGER_NAME)

EXTRACTION_PROMPT = """You are an expert Senior Credit Officer analyzing a corporate credit agreement.

Your task is two-fold:
1. EXTRACT specific terms from the document.
2. COMPARE those extracted terms against a Market Benchmark to determine risk variance.

TERMS TO EXTRACT:
{terms}

MARKET BENCHMARK (Standard / Conservative Profile):
{benchmark}

INSTRUCTIONS:
- For each term, extract the 'value' (concise but complete), 'sourceSection', and 'evidence' (verbatim quote).
- Determine 'confidence' of the extraction (High/Medium/Low).
- Compare the extracted value against the Market Benchmark entry for the same term and give it as 'benchmarkValue'.
- Determine 'variance': 'Green', 'Yellow', 'Red', or 'N/A' when no benchmark applies.
- Provide short 'commentary'.

If a term is not found, set value="Not Found".

Respond with a JSON object containing a key 'results' which is an array with one item per term,
each with keys: term, value, sourceSection, evidence, confidence, benchmarkValue, variance, commentary.

CREDIT AGREEMENT:
{document}
"""

REBENCHMARK_PROMPT = """You are a Senior Credit Officer.
RE-EVALUATE risk variance of these extracted terms against the provided benchmark.

TARGET BENCHMARK:
{benchmark}

EXTRACTED TERMS:
{extracted}

INSTRUCTIONS:
- Compare 'value' vs the benchmark entry for the same term.
- Determine 'variance': 'Green', 'Yellow', 'Red', or 'N/A'.
- Provide short 'commentary'.

Respond with a JSON object containing a key 'results', an array of items with keys:
term, benchmarkValue, variance, commentary.
"""

CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant analyzing the attached Credit Agreement. "
    "Answer based ONLY on the provided document context. Quote sections."
)

FINANCIALS_PROMPT = """Find the latest financial data for "{borrower}" (SEC 10-K/10-Q filings).
Extract LTM Revenue, EBITDA, Debt, Cash and Net Leverage.

Respond with a JSON object containing a key 'results', an array of items with keys:
metric, value, period, source (URL or filing name).
"""


class LLMService(IExtractionService):
    """Extraction collaborator backed by a local LLM API (e.g., Ollama)."""

    def __init__(
        self,
        base_url: str,
        model: str,
        text_extractor: IDocumentTextExtractor,
        timeout: int = settings.REQUEST_TIMEOUT,
    ):
        """
        Initializes the LLMService.

        Args:
            base_url: The base URL of the LLM API.
            model: The name of the model to use.
            text_extractor: Turns uploaded documents into prompt text.
            timeout: The request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.text_extractor = text_extractor
        self.timeout = timeout

    # ============= Transport =============

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Blocking POST to the LLM API. Transport errors become ExtractionFailure."""
        try:
            logger.info(f"Sending request to LLM model '{self.model}' ({path})...")
            response = requests.post(
                f"{self.base_url}{path}",
                json={"model": self.model, "stream": False, **payload},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout:
            logger.error(f"LLM request timed out after {self.timeout} seconds.")
            raise ExtractionFailure("LLM request timed out")
        except requests.exceptions.ConnectionError:
            logger.error(f"Cannot connect to LLM at {self.base_url}. Is the service running?")
            raise ExtractionFailure("Cannot connect to LLM service")
        except requests.exceptions.HTTPError as e:
            logger.error(f"LLM service returned an error: {e.response.status_code} {e.response.text}")
            raise ExtractionFailure(f"LLM error: {e.response.status_code}")
        except ValueError as e:
            logger.error(f"LLM response was not JSON: {e}")
            raise ExtractionFailure("Malformed response from LLM")

    async def _generate_json(self, prompt: str) -> List[Dict[str, Any]]:
        result = await asyncio.to_thread(
            self._post, "/api/generate", {"prompt": prompt, "format": "json", "options": {"temperature": 0}}
        )
        return self._parse_items(result.get("response"))

    @staticmethod
    def _parse_items(text: Any) -> List[Dict[str, Any]]:
        """Accepts either a bare JSON array or an object with a 'results' array."""
        if not isinstance(text, str) or not text.strip():
            logger.error("LLM response was empty or malformed.")
            raise ExtractionFailure("Empty response from LLM")
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExtractionFailure(f"LLM did not return valid JSON: {e}")

        if isinstance(parsed, dict):
            parsed = parsed.get("results")
        if not isinstance(parsed, list):
            raise ExtractionFailure("LLM response did not contain a results array")
        return [item for item in parsed if isinstance(item, dict)]

    async def _document_text(self, file: UploadedFile, limit: int) -> str:
        text = await asyncio.to_thread(self.text_extractor.extract_text, file)
        if len(text) > limit:
            logger.warning(f"Document '{file.name}' truncated from {len(text)} to {limit} characters")
            text = text[:limit]
        return text

    # ============= IExtractionService =============

    async def extract_and_benchmark(
        self,
        file: UploadedFile,
        terms: List[StandardTerm],
        benchmark_data: dict,
    ) -> Tuple[List[ExtractionResult], List[BenchmarkResult]]:
        if not terms:
            raise ExtractionFailure("No terms configured for extraction")

        document = await self._document_text(file, settings.DOCUMENT_CHAR_LIMIT)
        prompt = EXTRACTION_PROMPT.format(
            terms="\n".join(f"{t.name} ({t.description})" for t in terms),
            benchmark=json.dumps(benchmark_data, indent=2),
            document=document,
        )
        items = await self._generate_json(prompt)
        extraction, benchmarking = build_term_results(items, benchmark_data)
        if not extraction:
            raise ExtractionFailure("LLM returned no usable term results")
        return extraction, benchmarking

    async def rebenchmark_terms(
        self,
        extraction: List[ExtractionResult],
        benchmark_data: dict,
    ) -> List[BenchmarkResult]:
        extracted = [{"term": r.term, "value": r.value} for r in extraction]
        prompt = REBENCHMARK_PROMPT.format(
            benchmark=json.dumps(benchmark_data, indent=2),
            extracted=json.dumps(extracted, indent=2),
        )
        items = await self._generate_json(prompt)
        return build_rebenchmark_results(items, extraction, benchmark_data)

    async def chat(self, file: UploadedFile, history: List[ChatMessage], message: str) -> str:
        if not message or not message.strip():
            raise ExtractionFailure("Empty prompt provided")

        document = await self._document_text(file, settings.CHAT_DOCUMENT_CHAR_LIMIT)
        recent = [m for m in history if not m.is_error][-settings.CHAT_CONTEXT_LIMIT:]
        messages = [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            {"role": "user", "content": f"Document Context:\n{document}\n\n(Truncated if too long)"},
            *({"role": m.role.value, "content": m.text} for m in recent),
            {"role": ChatRole.USER.value, "content": message},
        ]
        result = await asyncio.to_thread(self._post, "/api/chat", {"messages": messages})

        answer = (result.get("message") or {}).get("content")
        if not answer or not answer.strip():
            logger.error("LLM response was empty or malformed.")
            raise ExtractionFailure("Empty response from LLM")
        logger.info("Successfully received response from LLM.")
        return answer.strip()

    async def fetch_financials(self, borrower_name: str) -> WebFinancials:
        items = await self._generate_json(FINANCIALS_PROMPT.format(borrower=borrower_name))
        metrics = [
            WebFinancialMetric(
                metric=str(item.get("metric") or ""),
                value=str(item.get("value") or ""),
                period=str(item.get("period") or ""),
                source=str(item.get("source") or ""),
            )
            for item in items
            if item.get("metric")
        ]
        # Unique URLs in first-seen order
        source_urls = list(dict.fromkeys(
            m.source for m in metrics if m.source.startswith(("http://", "https://"))
        ))
        return WebFinancials(data=metrics, source_urls=source_urls, last_updated=utc_now())
