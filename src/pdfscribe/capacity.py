# src/pdfscribe/capacity.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

logger = logging.getLogger("pdfscribe")

DOCKERENV_PATH = Path("/.dockerenv")
DEFAULT_CGROUP_ROOT = Path("/sys/fs/cgroup")


def _read_cgroup_v1_quota(root: Path) -> Optional[Tuple[int, int]]:
    quota_p = root / "cpu" / "cpu.cfs_quota_us"
    period_p = root / "cpu" / "cpu.cfs_period_us"
    if not (quota_p.exists() and period_p.exists()):
        return None
    quota = int(quota_p.read_text(encoding="utf-8").strip())
    period = int(period_p.read_text(encoding="utf-8").strip())
    return quota, period


def _read_cgroup_v2_quota(root: Path) -> Optional[Tuple[int, int]]:
    # cpu.max holds "<quota> <period>", quota is "max" when unlimited
    cpu_max = root / "cpu.max"
    if not cpu_max.exists():
        return None
    parts = cpu_max.read_text(encoding="utf-8").split()
    if len(parts) != 2 or parts[0] == "max":
        return None
    return int(parts[0]), int(parts[1])


class CapacityEstimator:
    """
    Determines how many OCR worker processes this host can afford.

    Half the logical CPUs on bare metal, a third inside a container, and half
    the cgroup CPU limit when one is set. A positive override wins.
    """

    def __init__(
        self,
        override: Optional[int] = None,
        cpu_count: Optional[int] = None,
        cgroup_root: Path | str = DEFAULT_CGROUP_ROOT,
        env: Optional[Mapping[str, str]] = None,
        dockerenv_path: Path | str = DOCKERENV_PATH,
    ):
        self.override = override
        self.cpu_count = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
        self.cgroup_root = Path(cgroup_root)
        self.env = os.environ if env is None else env
        self.dockerenv_path = Path(dockerenv_path)

    def is_containerized(self) -> bool:
        return self.dockerenv_path.exists() or bool(self.env.get("KUBERNETES_SERVICE_HOST"))

    def cpu_limit(self) -> Optional[float]:
        """Return the cgroup CPU limit in cores, None when unlimited or unreadable."""
        for reader in (_read_cgroup_v1_quota, _read_cgroup_v2_quota):
            try:
                qp = reader(self.cgroup_root)
            except (OSError, ValueError) as e:
                logger.warning("Failed to read CPU limits from cgroup, %s", e)
                continue
            if qp is None:
                continue
            quota, period = qp
            if quota > 0 and period > 0:
                return quota / period
        return None

    def estimate(self) -> int:
        if self.override is not None and self.override > 0:
            logger.debug("Using worker count override, %s", self.override)
            return int(self.override)

        workers = self.cpu_count // 2
        if self.is_containerized():
            workers = self.cpu_count // 3
            limit = self.cpu_limit()
            if limit is not None:
                workers = int(limit / 2)
                logger.debug("Container CPU limit cores=%.2f workers=%d", limit, workers)

        return max(1, workers)


def estimate_worker_capacity(config=None) -> int:
    """Capacity for a PipelineConfig, honoring its max_workers override."""
    override = config.worker_override if config is not None else None
    return CapacityEstimator(override=override).estimate()
