from tokenlist_builder.check.token import (
    TOKEN_CHECKS,
    TokenCheck,
    TokenCheckConfig,
)

Check = TokenCheck
