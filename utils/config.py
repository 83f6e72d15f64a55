# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from core.exceptions import InvalidConfigurationError
from core.models import Feature, ReconciliationReportletConf
from core.population import PAGE_SIZE


class Config:
    """Configuration management"""

    def __init__(self):
        load_dotenv()

    @property
    def store_file(self) -> Optional[str]:
        return os.getenv("RECON_STORE_FILE")

    @property
    def report_name(self) -> str:
        return os.getenv("RECON_REPORT_NAME", "reconciliation")

    @property
    def features(self) -> Optional[str]:
        return os.getenv("RECON_FEATURES")

    @property
    def user_matching_cond(self) -> Optional[str]:
        return os.getenv("RECON_USER_COND")

    @property
    def group_matching_cond(self) -> Optional[str]:
        return os.getenv("RECON_GROUP_COND")

    @property
    def any_object_matching_cond(self) -> Optional[str]:
        return os.getenv("RECON_ANY_OBJECT_COND")

    @property
    def page_size(self) -> int:
        value = os.getenv("RECON_PAGE_SIZE")
        if not value:
            return PAGE_SIZE
        try:
            page_size = int(value)
        except ValueError:
            raise InvalidConfigurationError(f"RECON_PAGE_SIZE must be an integer, got '{value}'")
        if page_size < 1:
            raise InvalidConfigurationError(f"RECON_PAGE_SIZE must be positive, got {page_size}")
        return page_size

    @property
    def ldap_server(self) -> Optional[str]:
        return os.getenv("LDAP_SERVER")

    @property
    def ldap_username(self) -> Optional[str]:
        return os.getenv("LDAP_USERNAME")

    @property
    def ldap_password(self) -> Optional[str]:
        return os.getenv("LDAP_PASSWORD")

    @property
    def ldap_base_dn(self) -> Optional[str]:
        return os.getenv("LDAP_BASE_DN")

    def ldap_defaults(self) -> Dict[str, Any]:
        """LDAP connector settings used where a resource does not define its own"""
        defaults = {
            "server": self.ldap_server,
            "username": self.ldap_username,
            "password": self.ldap_password,
            "base_dn": self.ldap_base_dn,
        }
        return {key: value for key, value in defaults.items() if value}

    def validate_store_config(self) -> bool:
        """Validate that the identity store location is configured"""
        return bool(self.store_file)

    def get_missing_store_vars(self) -> List[str]:
        return [] if self.store_file else ["RECON_STORE_FILE"]

    def build_reportlet_conf(self, features: Optional[str] = None,
                             user_cond: Optional[str] = None,
                             group_cond: Optional[str] = None,
                             any_object_cond: Optional[str] = None) -> ReconciliationReportletConf:
        """Build the reportlet configuration; explicit arguments override the environment"""
        feature_list = features if features is not None else self.features
        kwargs = {}
        if feature_list:
            kwargs["features"] = parse_features(feature_list)

        return ReconciliationReportletConf(
            name=self.report_name,
            user_matching_cond=user_cond if user_cond is not None else self.user_matching_cond,
            group_matching_cond=group_cond if group_cond is not None else self.group_matching_cond,
            any_object_matching_cond=any_object_cond if any_object_cond is not None
            else self.any_object_matching_cond,
            **kwargs
        )


def parse_features(value: str) -> List[Feature]:
    """Parse a comma separated feature list, keeping order and dropping repeats"""
    by_name = {feature.value.lower(): feature for feature in Feature}
    features = []
    for name in (part.strip() for part in value.split(",")):
        if not name:
            continue
        feature = by_name.get(name.lower())
        if feature is None:
            valid = ", ".join(f.value for f in Feature)
            raise InvalidConfigurationError(f"Unknown feature '{name}'. Valid features: {valid}")
        if feature not in features:
            features.append(feature)
    return features
