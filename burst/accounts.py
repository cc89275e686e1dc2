"""
Account credential loading.

The credential file is a JSON list in the venue's native key naming:

    [{"name": "main", "mail": "a@b.c", "apiKey": "...", "secretKey": "..."}]
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import AccountConfigError
from .models import Account

logger = logging.getLogger(__name__)


class AccountEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    mail: Optional[str] = None
    api_key: str = Field(alias="apiKey", min_length=1)
    secret_key: str = Field(alias="secretKey", min_length=1)


def parse_accounts(raw: object) -> List[Account]:
    if not isinstance(raw, list):
        raise AccountConfigError("credential file must contain a JSON list of accounts")

    accounts: List[Account] = []
    for i, item in enumerate(raw):
        try:
            entry = AccountEntry.model_validate(item)
        except ValidationError as e:
            raise AccountConfigError(f"account #{i} is invalid: {e.errors()[0].get('msg', e)}") from e
        accounts.append(Account(
            name=entry.name or f"account-{i}",
            api_key=entry.api_key.strip(),
            secret_key=entry.secret_key.strip(),
            mail=entry.mail,
        ))
    return accounts


def load_accounts(path: Union[str, Path], index: Optional[int] = None) -> List[Account]:
    """Load every account from `path`, or just the one at `index`."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise AccountConfigError(f"credential file not found: {path}") from e
    except (OSError, ValueError) as e:
        raise AccountConfigError(f"cannot read credential file {path}: {e}") from e

    accounts = parse_accounts(raw)
    if index is not None:
        if not 0 <= index < len(accounts):
            raise AccountConfigError(f"account index {index} out of range (0-{len(accounts) - 1})")
        accounts = [accounts[index]]

    logger.info(f"[Accounts] loaded {len(accounts)} account(s) from {path}")
    return accounts
