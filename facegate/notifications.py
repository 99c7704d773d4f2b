"""
Webhook notification module.

Pushes a positive match to the tenant's webhook and decodes the gate
decision it answers with. Exactly one attempt per call, bounded by a
fixed deadline; a request that may have opened a door is never resent,
and a redirect is an error rather than a second request.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Optional

import requests

from .errors import RemoteDecodeError, RemoteError, RemoteTimeout, RemoteTransport
from .logging_config import get_logger
from .models import GateDecision, MatchOutcome, TenantConfig

logger = get_logger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 5.0


def parse_decision(response: requests.Response) -> GateDecision:
    """
    Decode a webhook response body.

    Raises:
        RemoteDecodeError: If the body is not JSON or misses a field
    """
    try:
        data = response.json()
    except ValueError as e:
        raise RemoteDecodeError(f'Webhook response is not JSON: {e}') from e
    return GateDecision.from_dict(data)


class NotificationClient:
    """
    Single-attempt webhook client.

    Each push runs on a pool thread and is abandoned once the deadline
    passes; the caller gets RemoteTimeout and the decision stays unknown.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        max_workers: int = 8
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='webhook')

    def push(self, config: TenantConfig, outcome: MatchOutcome) -> GateDecision:
        """
        Send a matched outcome to the tenant webhook.

        Args:
            config: Tenant configuration holding the webhook URL
            outcome: Matched outcome

        Returns:
            The webhook's decision, unmodified

        Raises:
            RemoteTimeout: No answer within the deadline
            RemoteTransport: Connection refused, DNS failure, ...
            RemoteError: Non-2xx HTTP status
            RemoteDecodeError: Body is not a gate decision
        """
        url = config.webhook_url
        payload = outcome.webhook_payload()

        logger.info(
            f"📤 Pushing match {payload['local_id']} to tenant {config.tenant_id} webhook "
            f"(request_id={outcome.request_id})"
        )

        future = self._executor.submit(self._post, url, payload)
        try:
            response = future.result(timeout=self.timeout)
        except FuturesTimeout:
            # not started yet (pool saturated): make sure it never is
            future.cancel()
            logger.error(f'❌ Webhook timeout after {self.timeout:.1f}s: {url}')
            raise RemoteTimeout() from None
        except requests.exceptions.Timeout as e:
            logger.error(f'❌ Webhook timeout: {url}')
            raise RemoteTimeout() from e
        except requests.exceptions.RequestException as e:
            logger.error(f'❌ Webhook transport error for {url}: {e}')
            raise RemoteTransport(f'Webhook unreachable: {e}') from e

        if not 200 <= response.status_code < 300:
            logger.error(f'❌ Webhook returned {response.status_code} for {url}')
            raise RemoteError(response.status_code)

        decision = parse_decision(response)
        logger.info(
            f'✅ Webhook decision status={decision.status} '
            f'({"allow" if decision.allowed else "deny"}) request_id={decision.request_id}'
        )
        return decision

    def _post(self, url: str, payload: dict) -> requests.Response:
        return self.session.post(
            url,
            json=payload,
            headers={'Content-Type': 'application/json'},
            timeout=self.timeout,
            allow_redirects=False,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.session.close()
