"""YAML 场景配置

一份或多份 YAML 按顺序递归合并（后者覆盖前者），最后合并调用方传入的字典
覆盖项。读取使用点路径（如 ``pwem.order``）；数值读取经
:meth:`ConfigManager.get_float` / :meth:`ConfigManager.get_int` 完成，类型不符时
抛出 :class:`~photonicbandsim.core.errors.InvalidConfigurationError` 并给出键名。

每次运行的输出目录由 ``run.output_dir`` 模板生成；运行开始时写入
``resolved_config.yaml`` 与 ``manifest.json``（版本、场景与配置来源）。
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from .. import __version__
from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATTERN = "runs/{name}_{timestamp}"
OVERRIDES_SOURCE = "<overrides>"


def merge_config(base: Mapping, override: Mapping | None) -> dict:
    """递归合并两份配置，返回新字典（输入不被修改）。"""
    merged = dict(base)
    for key, value in (override or {}).items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        doc = yaml.safe_load(f)
    if doc is None:
        return {}
    if not isinstance(doc, Mapping):
        raise InvalidConfigurationError(
            str(path), f"顶层必须是键值映射，得到 {type(doc).__name__}"
        )
    return dict(doc)


class ConfigManager:
    """场景配置

    Parameters
    ----------
    files : Iterable[str] | None, optional
        按顺序合并的 YAML 文件；不存在的文件记录警告后跳过。
    overrides : Mapping | None, optional
        最后合并的覆盖项，便于脚本与测试直接传参。

    Examples
    --------
    >>> cfg = ConfigManager(overrides={"pwem": {"order": 2}})
    >>> cfg.get_int("pwem.order")
    2
    >>> cfg.get_float("material.nb", 1.6)
    1.6
    """

    def __init__(
        self, files: Iterable[str] | None = None, overrides: Mapping | None = None
    ) -> None:
        self._data: dict[str, Any] = {}
        self._sources: list[str] = []
        for item in files or ():
            path = Path(item)
            if not path.exists():
                logger.warning(f"配置文件不存在，已跳过: {path}")
                continue
            self._data = merge_config(self._data, _read_yaml(path))
            self._sources.append(str(path))
        if overrides:
            self._data = merge_config(self._data, overrides)
            self._sources.append(OVERRIDES_SOURCE)

    @property
    def data(self) -> dict:
        """合并后的配置字典。"""
        return self._data

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    # --------- 读取 ---------
    def get(self, path: str, default: Any | None = None) -> Any:
        """按点路径读取，任一层缺失（或中间节点不是映射）时返回 ``default``。"""
        node: Any = self._data
        for key in path.split("."):
            if not isinstance(node, Mapping) or key not in node:
                return default
            node = node[key]
        return node

    def _number(self, path: str, default: Any, cast: Callable, kind: str):
        value = self.get(path, default)
        # YAML 的 true/false 会被 float() 接受，这里显式拒绝
        if value is None or isinstance(value, bool):
            raise InvalidConfigurationError(path, f"需为{kind}，得到 {value!r}")
        try:
            return cast(value)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(path, f"需为{kind}，得到 {value!r}") from exc

    def get_float(self, path: str, default: float | None = None) -> float:
        """读取实数，无法转换时抛出 :class:`InvalidConfigurationError`。"""
        return self._number(path, default, float, "实数")

    def get_int(self, path: str, default: int | None = None) -> int:
        """读取整数；``4.0`` 与 ``"4"`` 可接受，``4.5`` 不可接受。"""
        value = self._number(path, default, float, "整数")
        if not value.is_integer():
            raise InvalidConfigurationError(
                path, f"需为整数，得到 {self.get(path, default)!r}"
            )
        return int(value)

    # --------- 运行目录 ---------
    def make_output_dir(self, name: str | None = None) -> str:
        """按 ``run.output_dir`` 模板创建输出目录并返回路径

        模板可含 ``{name}`` 与 ``{timestamp}``，缺省为 ``runs/{name}_{timestamp}``；
        ``name`` 缺省取 ``run.name``（再缺省为 ``"run"``）。
        """
        pattern = str(self.get("run.output_dir", DEFAULT_OUTPUT_PATTERN))
        stamp = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
        out = pattern.format(name=name or self.get("run.name", "run"), timestamp=stamp)
        os.makedirs(out, exist_ok=True)
        return out

    def snapshot(self, output_dir: str, scenario: str | None = None) -> None:
        """在输出目录写入 ``resolved_config.yaml`` 与 ``manifest.json``

        写入失败只记录警告。
        """
        outdir = Path(output_dir)
        manifest = {
            "package": "photonicbandsim",
            "version": __version__,
            "scenario": scenario,
            "timestamp": _dt.datetime.now().isoformat(timespec="seconds"),
            "sources": self.sources,
        }
        try:
            with open(outdir / "resolved_config.yaml", "w", encoding="utf-8") as f:
                yaml.safe_dump(self._data, f, allow_unicode=True, sort_keys=True)
            with open(outdir / "manifest.json", "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2, ensure_ascii=False)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning(f"配置快照写入失败: {exc}")
