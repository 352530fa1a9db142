"""
Call builders for a few common execution modules.

Each builder only names the function, assembles its arguments and declares
the type every minion is expected to return.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from salt_netapi.calls.models import LocalCall


@dataclass
class PackageInfo:
    """Subset of what `pkg.info_installed` reports for one package."""
    version: str
    architecture: Optional[str] = None
    summary: Optional[str] = None
    vendor: Optional[str] = None
    install_date: Optional[str] = None


def ping() -> LocalCall[bool]:
    return LocalCall("test.ping", return_type=bool)


def cmd_run(cmd: str) -> LocalCall[str]:
    return LocalCall("cmd.run", kwarg={"cmd": cmd}, return_type=str)


def grains_items(sanitize: Optional[bool] = None) -> LocalCall[Dict[str, Any]]:
    kwarg = {"sanitize": sanitize} if sanitize is not None else None
    return LocalCall("grains.items", kwarg=kwarg, return_type=Dict[str, Any])


def pkg_list_pkgs() -> LocalCall[Dict[str, List[str]]]:
    return LocalCall("pkg.list_pkgs", kwarg={"versions_as_list": True}, return_type=Dict[str, List[str]])


def pkg_latest_version(*packages: str) -> LocalCall:
    """
    One package answers with a version string, several with a name -> version map.
    """
    if not packages:
        raise ValueError("pkg_latest_version needs at least one package name")
    if len(packages) == 1:
        return LocalCall("pkg.latest_version", kwarg={"package": packages[0]}, return_type=str)
    return LocalCall("pkg.latest_version", arg=list(packages), return_type=Dict[str, str])


def pkg_info_installed(*packages: str) -> LocalCall[Dict[str, PackageInfo]]:
    return LocalCall("pkg.info_installed", arg=list(packages), return_type=Dict[str, PackageInfo])
