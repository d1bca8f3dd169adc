"""
Install-time lifecycle task: provision the support index.

The provisioner raises ProvisioningError on any failure other than "already
exists"; this wrapper owns the bounded retry (INDEX_MAX_ATTEMPTS attempts,
exponential back-off) and lets the last error escape to the installer.
"""

from typing import Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from support_bridge.config import settings
from support_bridge.core.exceptions import ProvisioningError
from support_bridge.core.logging_config import get_logger
from support_bridge.core.paths import get_path_config
from support_bridge.db.mongodb import get_database
from support_bridge.services.index_provisioner import IndexOutcome, IndexProvisioner

logger = get_logger(__name__)


async def create_support_index(
    provisioner: Optional[IndexProvisioner] = None,
    max_attempts: Optional[int] = None,
    wait_min: float = 1,
    wait_max: float = 10,
) -> IndexOutcome:
    provisioner = provisioner or IndexProvisioner(
        get_database(), get_path_config().thread_document
    )
    max_attempts = max_attempts or settings.INDEX_MAX_ATTEMPTS

    logger.info("create_support_index_started", max_attempts=max_attempts)

    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ProvisioningError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
        reraise=True,
    ):
        with attempt:
            attempt_number = attempt.retry_state.attempt_number
            if attempt_number > 1:
                logger.warning("create_support_index_retry", attempt=attempt_number)
            outcome = await provisioner.provision()

    logger.info("create_support_index_finished", outcome=outcome.value)
    return outcome
