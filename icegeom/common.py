#!/usr/bin/env python3

"""
# Copyright (C) 2021-2025 IGM authors
Published under the GNU GPL (Version 3), check at the LICENSE file
"""

import os
import importlib
from typing import List, Any
from types import ModuleType
import logging
import time
import datetime

import matplotlib.pyplot as plt
import numpy as np
from omegaconf import DictConfig, OmegaConf
from tqdm import tqdm

ICEGEOM_DESCRIPTION = r"""
  ┌──────────────────────────────────────────────────────────────────────────┐
  │   icegeom: explicit update of ice thickness, surface elevation and the   │
  │        grounded/floating mask on a tiled structured grid                 │
  └──────────────────────────────────────────────────────────────────────────┘
"""


class State:
    pass


def load_yaml_recursive(path) -> DictConfig:
    """
    Build the configuration tree from a folder of yaml files: path/core.yaml
    becomes cfg.core, path/processes/thk.yaml becomes cfg.processes.thk, etc.
    """
    cfg = OmegaConf.create()
    for entry in sorted(os.listdir(path)):
        full = os.path.join(path, entry)
        if os.path.isdir(full):
            cfg[entry] = load_yaml_recursive(full)
        elif entry.endswith((".yaml", ".yml")):
            cfg[os.path.splitext(entry)[0]] = OmegaConf.load(full)
    return cfg


def get_module_name(module):
    return module.__name__.split(".")[-1]


def load_modules(names: List[str]) -> List[ModuleType]:
    """Returns the list of process modules to apply initialize, update, finalize on."""
    imported_modules = []
    for module_name in names:
        module = importlib.import_module(f"icegeom.processes.{module_name}")
        validate_module(module)
        imported_modules.append(module)
    return imported_modules


def validate_module(module) -> None:
    """Validates that a module has the required functions to be used in icegeom."""
    required_functions = ["initialize", "finalize", "update"]
    for function in required_functions:
        if not hasattr(module, function):
            raise AttributeError(
                f"Module {module} is missing the required function ({function}). "
                f"Process modules must provide the 3 functions: {required_functions}."
            )


def add_logger(cfg, state) -> None:

    logging.basicConfig(
        encoding="utf-8",
        level=cfg.core.logging_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logging.root.setLevel(cfg.core.logging_level)

    state.logger = logging.getLogger("icegeom")


def initialize_modules(processes: List, cfg: Any, state: State) -> None:
    for module in processes:
        if hasattr(state, "logger"):
            state.logger.info(f"Initializing module: {get_module_name(module)}")
        module.initialize(cfg, state)


def update_modules(processes: List, cfg: Any, state: State) -> None:
    if cfg.core.print_comp:
        state.tcomp = {get_module_name(module): [] for module in processes}
    state.it = 0
    while state.t < cfg.processes.time.end:
        for module in processes:
            m = get_module_name(module)
            if cfg.core.print_comp:
                state.tcomp[m].append(time.time())
            module.update(cfg, state)
            if cfg.core.print_comp:
                state.tcomp[m][-1] -= time.time()
                state.tcomp[m][-1] *= -1
        state.it += 1
        if cfg.core.print_info:
            print_info(state)


def finalize_modules(processes: List, cfg: Any, state: State) -> None:
    for module in processes:
        module.finalize(cfg, state)
    if hasattr(state, "pbar"):
        state.pbar.close()


def run(cfg, state, names=("time", "geometry", "driving_stress", "thk")) -> State:
    """
    Run the process modules in the given order from cfg.processes.time.start to
    cfg.processes.time.end. The state must hold the grid, the thickness and the bed.
    """
    if cfg.core.print_info:
        print(ICEGEOM_DESCRIPTION)

    if cfg.core.logging:
        add_logger(cfg=cfg, state=state)

    processes = load_modules(list(names))

    initialize_modules(processes, cfg, state)
    update_modules(processes, cfg, state)
    finalize_modules(processes, cfg, state)

    if cfg.core.print_comp:
        print_comp(state)

    return state


def print_info(state):

    if state.it % 100 == 1:
        if hasattr(state, "pbar"):
            state.pbar.close()
        state.pbar = tqdm(desc=f"icegeom",
                          ascii=False,
                          dynamic_ncols=True,
                          bar_format="{desc} {postfix}")

    if hasattr(state, "pbar"):
        volume = state.thk.reduce_sum() * state.grid.dx * state.grid.dy
        state.pbar.set_postfix({
            "🕒": datetime.datetime.now().strftime("%H:%M:%S"),
            "🔄": f"{state.it:06.0f}",
            "⏱ Time": f"{state.t.numpy():09.1f} yr",
            "⏳ Step": f"{state.dt_target.numpy():04.2f} yr",
            "❄️  Volume": f"{volume / 10**9:8.2f} km³",
            "dH/dt": f"{getattr(state, 'dHdt_avg', 0.0):+.3e} m/yr",
        })
        state.pbar.update(1)


def print_comp(state):

    modules = list(state.tcomp.keys())

    print("Computational statistics report:")
    with open("computational-statistics.txt", "w") as f:
        for m in modules:
            CELA = (m, np.mean(state.tcomp[m]), np.sum(state.tcomp[m]))
            print("     %14s  |  mean time per it : %8.4f  |  total : %8.4f" % CELA, file=f)
            print("     %14s  |  mean time per it : %8.4f  |  total : %8.4f" % CELA)

    _plot_computational_pie(state)


def _plot_computational_pie(state):
    """
    Plot to the computational time of each model components in a pie
    """

    def make_autopct(values):
        def my_autopct(pct):
            total = sum(values)
            val = int(round(pct * total / 100.0))
            return "{:.0f}".format(val)

        return my_autopct

    total = []
    name = []

    for m in state.tcomp.keys():
        total.append(np.sum(state.tcomp[m][1:]))
        name.append(m)

    fig, ax = plt.subplots(figsize=(6, 6), subplot_kw=dict(aspect="equal"), dpi=200)
    wedges, texts, autotexts = ax.pie(
        total, autopct=make_autopct(total), textprops=dict(color="w")
    )
    ax.legend(
        wedges,
        name,
        title="Model components",
        loc="center left",
        bbox_to_anchor=(1, 0, 0.5, 1),
    )
    plt.setp(autotexts, size=8, weight="bold")
    plt.tight_layout()
    plt.savefig("computational-pie.png", pad_inches=0)
    plt.close("all")
