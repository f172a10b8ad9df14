from copy import deepcopy
from typing import Any, Dict, List, Sequence

from loguru import logger

from tokenlist_builder.check import TOKEN_CHECKS, Check
from tokenlist_builder.errors import TokenListValidationError
from tokenlist_builder.models import ListClass, TokenInfo

DEFAULT_CHECKS_CONFIG: Dict[str, Any] = {
    "global": {check.__name__: {"enable": True} for check in TOKEN_CHECKS},
}


class Validator:
    """
    Run the enabled token checks for a list class. Trusted classes fail the
    build on any failed check; untrusted lists only log them since some of
    their tokens are expected to have incomplete metadata.
    """

    def __init__(self, config: Dict[str, Any] | None = None) -> None:
        self.config = config if config is not None else DEFAULT_CHECKS_CONFIG

    def load_config(self, check_name: str, list_class: ListClass) -> Dict[str, Any]:
        config = deepcopy(
            self.config.get("global", {}).get(check_name, {"enable": True})
        )

        if str(list_class) in self.config:
            if check_name in self.config[str(list_class)]:
                config |= self.config[str(list_class)][check_name]

        return config

    def check_tokens(
        self, list_class: ListClass, tokens: Sequence[TokenInfo]
    ) -> List[Check]:
        failed_checks: List[Check] = []

        for check_class in TOKEN_CHECKS:
            config = self.load_config(check_class.__name__, list_class)
            if not config["enable"]:
                continue

            for token in tokens:
                check = check_class(token, config)
                if not check.run():
                    failed_checks.append(check)

        return failed_checks

    def validate(
        self, list_name: str, list_class: ListClass, tokens: Sequence[TokenInfo]
    ) -> List[Check]:
        failed_checks = self.check_tokens(list_class, tokens)

        for check in failed_checks:
            event = check.error_message()
            with logger.contextualize(**event):
                if list_class.is_trusted:
                    logger.error(event["msg"])
                else:
                    logger.info(event["msg"])

        if failed_checks and list_class.is_trusted:
            raise TokenListValidationError(
                list_name, [check.state().address for check in failed_checks]
            )

        return failed_checks
