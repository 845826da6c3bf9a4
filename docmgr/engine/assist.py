"""
docmgr Text Assist — template drafts, research notes and content polishing.

Two clients share one async interface:

    LocalAssistClient — built-in canned drafts, no network (default)
    HttpAssistClient  — JSON over HTTP to an external text service via
                        httpx.AsyncClient, with a per-call timeout and one
                        retry on transport failures (connect errors, timeouts)

HTTP protocol (POST, JSON):
    {base_url}/template  {documentType, title, fileType, recipientInfo?, isInternal?} -> {template}
    {base_url}/research  {topic, documentType, context?}                              -> {research}
    {base_url}/improve   {content, documentType}                                      -> {improvedContent}

Upstream failures surface as ExternalServiceError carrying the upstream
message verbatim.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from docmgr.documents.content import display_date
from docmgr.engine.config import AssistConfig
from docmgr.engine.errors import ExternalServiceError
from docmgr.engine.logging import log, log_assist_call

logger = logging.getLogger("docmgr.engine.assist")


class AssistClient(ABC):
    """Interface for the text-assist collaborator."""

    backend = "abstract"

    @abstractmethod
    async def generate_template(
        self,
        document_type: str,
        title: str,
        file_type: str,
        recipient_info: Optional[Dict[str, Any]] = None,
        is_internal: Optional[bool] = None,
    ) -> str:
        ...

    @abstractmethod
    async def research(self, topic: str, document_type: str, context: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def improve_content(self, content: str, document_type: str = "document") -> str:
        ...

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Local (built-in) drafts
# ---------------------------------------------------------------------------

class LocalAssistClient(AssistClient):
    """Canned drafts per document type. Unknown types get the memo draft."""

    backend = "local"

    def __init__(self, company_name: str = "ZEOLF Technology"):
        self._company = company_name

    def _done(self, operation: str, text: str) -> str:
        log(log_assist_call(operation, self.backend, 0.0, True))
        return text

    def _templates(self, title: str, today: str) -> Dict[str, str]:
        company = self._company
        upper = company.upper()
        return {
            "memo": (
                "MEMORANDUM\n\n"
                "TO: All Staff\n"
                "FROM: Management\n"
                f"DATE: {today}\n"
                f"RE: {title}\n\n"
                f"This memo serves to inform all staff members about {title}.\n\n"
                "[Content to be added here]\n\n"
                "Please contact management if you have any questions.\n\n"
                "Best regards,\n"
                f"{company} Management"
            ),
            "press_release": (
                "FOR IMMEDIATE RELEASE\n\n"
                f"{title}\n\n"
                f"{today} - {company} announces {title}.\n\n"
                "[Press release content to be added here]\n\n"
                f"About {company}:\n"
                f"{company} is a leading provider of document management solutions.\n\n"
                "Contact:\n"
                f"{company}"
            ),
            "internal_letter": (
                f"{upper}\n"
                "Internal Communication\n\n"
                f"Date: {today}\n"
                "To: [Recipient Name]\n"
                "From: [Your Name]\n"
                f"Subject: {title}\n\n"
                "Dear [Recipient],\n\n"
                "[Letter content to be added here]\n\n"
                "Sincerely,\n"
                "[Your Name]\n"
                "[Your Title]\n"
                f"{company}"
            ),
            "external_letter": (
                f"{upper}\n"
                "[Company Address]\n\n"
                f"{today}\n\n"
                "[Recipient Name]\n"
                "[Recipient Title]\n"
                "[Recipient Address]\n\n"
                "Dear [Recipient Name],\n\n"
                f"Subject: {title}\n\n"
                "[Letter content to be added here]\n\n"
                "Thank you for your attention to this matter.\n\n"
                "Sincerely,\n\n"
                "[Your Name]\n"
                "[Your Title]\n"
                f"{company}"
            ),
            "contract": (
                "CONTRACT AGREEMENT\n\n"
                f"Document Title: {title}\n"
                f"Date: {today}\n"
                "Contract Number: [To be assigned]\n\n"
                "PARTIES:\n"
                f"Party A: {company}\n"
                "Party B: [To be specified]\n\n"
                "TERMS AND CONDITIONS:\n"
                "[Contract terms to be added here]\n\n"
                "This contract is governed by applicable laws.\n\n"
                f"{company}\n"
                "Authorized Signature: _______________\n"
                "Date: _______________"
            ),
            "follow_up": (
                "FOLLOW-UP DOCUMENT\n\n"
                f"Subject: {title}\n"
                f"Date: {today}\n"
                "Reference: [Original document/meeting reference]\n\n"
                "SUMMARY:\n"
                "[Summary of previous communication]\n\n"
                "ACTION ITEMS:\n"
                "1. [Action item 1]\n"
                "2. [Action item 2]\n"
                "3. [Action item 3]\n\n"
                "NEXT STEPS:\n"
                "[Next steps to be taken]\n\n"
                f"{company}\n"
                "Document Management System"
            ),
        }

    async def generate_template(
        self,
        document_type: str,
        title: str,
        file_type: str,
        recipient_info: Optional[Dict[str, Any]] = None,
        is_internal: Optional[bool] = None,
    ) -> str:
        templates = self._templates(title, display_date())
        text = templates.get(document_type, templates["memo"])
        if recipient_info:
            # Fill the recipient placeholders that letters carry
            for key, placeholder in (
                ("name", "[Recipient Name]"),
                ("title", "[Recipient Title]"),
                ("address", "[Recipient Address]"),
            ):
                if recipient_info.get(key):
                    text = text.replace(placeholder, str(recipient_info[key]))
        return self._done("generate_template", text)

    async def research(self, topic: str, document_type: str, context: Optional[str] = None) -> str:
        label = document_type.replace("_", " ").upper()
        text = (
            f"Research Results for: {topic}\n\n"
            f"Document Type: {label}\n"
            f"Research Date: {display_date()}\n\n"
            "KEY FINDINGS:\n"
            f"• This is a comprehensive research summary for {topic}\n"
            "• Industry best practices suggest focusing on clear communication\n"
            "• Current market trends indicate growing demand for digital solutions\n"
            "• Regulatory compliance requirements should be considered\n\n"
            "RECOMMENDATIONS:\n"
            f"1. Implement structured approach to {topic}\n"
            "2. Consider stakeholder feedback and requirements\n"
            "3. Ensure compliance with industry standards\n"
            "4. Plan for future scalability and growth\n\n"
            "SOURCES:\n"
            "• Industry reports and publications\n"
            "• Best practice guidelines\n"
            "• Regulatory documentation\n"
            "• Market analysis data\n\n"
        )
        if context:
            text += f"CONTEXT CONSIDERED:\n{context}\n\n"
        text += f"This research was compiled to support the creation of your {document_type} document."
        return self._done("research", text)

    async def improve_content(self, content: str, document_type: str = "document") -> str:
        if not content or not content.strip():
            return "Please provide content to improve."
        return self._done("improve_content", (
            "IMPROVED CONTENT:\n\n"
            f"{content}\n\n"
            "ENHANCEMENTS APPLIED:\n"
            "• Improved clarity and readability\n"
            "• Enhanced professional tone\n"
            "• Corrected grammar and structure\n"
            "• Added appropriate formatting\n"
            f"• Ensured consistency with {document_type} standards\n\n"
            "This content has been optimized for professional business communication."
        ))


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class HttpAssistClient(AssistClient):
    """Calls an external text service. One client (connection pool) per instance."""

    backend = "http"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
        retries: int = 1,
        retry_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._retries = retries
        self._retry_delay = retry_delay
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def _post(self, operation: str, path: str, payload: Dict[str, Any], result_key: str) -> str:
        if self._model:
            payload = {**payload, "model": self._model}

        start_time = time.monotonic()
        last_error: Optional[Exception] = None
        attempts = 0

        for attempt in range(self._retries + 1):
            attempts = attempt + 1
            try:
                response = await self._client.post(path, json=payload)
            except httpx.TransportError as e:
                last_error = e
                if attempt < self._retries:
                    logger.warning(
                        f"Assist '{operation}' transport error: {e!r}, retrying in {self._retry_delay}s "
                        f"(attempt {attempt + 1}/{self._retries})"
                    )
                    await asyncio.sleep(self._retry_delay)
                    continue
                break

            duration_ms = (time.monotonic() - start_time) * 1000
            if response.status_code >= 400:
                message = self._upstream_message(response)
                log(log_assist_call(
                    operation, self.backend, duration_ms, False, attempts,
                    status_code=response.status_code, error=message,
                ))
                raise ExternalServiceError(
                    message,
                    upstream_status=response.status_code,
                    attempts=attempts,
                    operation=operation,
                )

            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict) or not isinstance(body.get(result_key), str):
                log(log_assist_call(
                    operation, self.backend, duration_ms, False, attempts,
                    status_code=response.status_code, error="malformed response",
                ))
                raise ExternalServiceError(
                    f"Assist service returned no '{result_key}'",
                    upstream_status=response.status_code,
                    attempts=attempts,
                    operation=operation,
                )

            log(log_assist_call(operation, self.backend, duration_ms, True, attempts,
                                status_code=response.status_code))
            return body[result_key]

        duration_ms = (time.monotonic() - start_time) * 1000
        log(log_assist_call(operation, self.backend, duration_ms, False, attempts, error=str(last_error)))
        raise ExternalServiceError(
            f"Assist service unavailable: {last_error}",
            attempts=attempts,
            operation=operation,
        )

    @staticmethod
    def _upstream_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error", "detail"):
                if isinstance(body.get(key), str):
                    return body[key]
        return response.text or f"Assist service failed with HTTP {response.status_code}"

    async def generate_template(
        self,
        document_type: str,
        title: str,
        file_type: str,
        recipient_info: Optional[Dict[str, Any]] = None,
        is_internal: Optional[bool] = None,
    ) -> str:
        payload: Dict[str, Any] = {"documentType": document_type, "title": title, "fileType": file_type}
        if recipient_info:
            payload["recipientInfo"] = recipient_info
        if is_internal is not None:
            payload["isInternal"] = is_internal
        return await self._post("generate_template", "/template", payload, "template")

    async def research(self, topic: str, document_type: str, context: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"topic": topic, "documentType": document_type}
        if context:
            payload["context"] = context
        return await self._post("research", "/research", payload, "research")

    async def improve_content(self, content: str, document_type: str = "document") -> str:
        return await self._post(
            "improve_content", "/improve",
            {"content": content, "documentType": document_type},
            "improvedContent",
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def create_assist_client(config: AssistConfig, company_name: str = "ZEOLF Technology") -> AssistClient:
    """HttpAssistClient when ``assist.base_url`` is set, else LocalAssistClient."""
    if config.base_url:
        logger.info(f"Using HTTP assist service at {config.base_url}")
        return HttpAssistClient(
            base_url=config.base_url,
            api_key=config.api_key,
            model=config.model,
            timeout=config.timeout,
            retries=config.retries,
        )
    return LocalAssistClient(company_name=company_name)
