from enum import Enum


class ModuleKey(str, Enum):
    CHART_OF_ACCOUNTS = "CHART_OF_ACCOUNTS"
    JOURNAL = "JOURNAL"
    POSTING_TEMPLATES = "POSTING_TEMPLATES"
    REPORTS = "REPORTS"
    CLOSING = "CLOSING"
    SETTINGS = "SETTINGS"


MODULE_DEFINITIONS: list[tuple[ModuleKey, str]] = [
    (ModuleKey.CHART_OF_ACCOUNTS, "Chart of Accounts"),
    (ModuleKey.JOURNAL, "General Journal"),
    (ModuleKey.POSTING_TEMPLATES, "Posting Templates"),
    (ModuleKey.REPORTS, "Reports"),
    (ModuleKey.CLOSING, "Period Closing"),
    (ModuleKey.SETTINGS, "Numbering Settings"),
]

MODULE_KEYS: list[str] = [module_key.value for module_key, _ in MODULE_DEFINITIONS]
MODULE_KEY_SET: set[str] = set(MODULE_KEYS)


class Role(str, Enum):
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    AUDITOR = "AUDITOR"


# Modules a role gets without explicit grants. Admins bypass module checks entirely.
ROLE_MODULES: dict[Role, tuple[ModuleKey, ...]] = {
    Role.ADMIN: tuple(module_key for module_key, _ in MODULE_DEFINITIONS),
    Role.ACCOUNTANT: (
        ModuleKey.CHART_OF_ACCOUNTS,
        ModuleKey.JOURNAL,
        ModuleKey.POSTING_TEMPLATES,
        ModuleKey.REPORTS,
    ),
    Role.AUDITOR: (ModuleKey.REPORTS,),
}


def ordered_module_keys(keys) -> list[str]:
    """Module keys in menu order, dropping unknown ones."""
    wanted = {str(getattr(key, "value", key)) for key in keys}
    return [key for key in MODULE_KEYS if key in wanted]
