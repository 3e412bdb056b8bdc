"""
============================================================================
Gift Fund Orchestrator v1.0.0
Directory Module - Nonprofit Search
============================================================================
"""

from giftfund.directory.nonprofit_client import (
    NTEE_MAJOR_GROUPS,
    NonprofitDirectoryClient,
    Organization,
    SearchPage,
    filter_organizations,
    ntee_major_group,
)

__all__ = [
    'NTEE_MAJOR_GROUPS',
    'NonprofitDirectoryClient',
    'Organization',
    'SearchPage',
    'filter_organizations',
    'ntee_major_group',
]
