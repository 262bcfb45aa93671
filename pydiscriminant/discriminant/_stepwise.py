"""
Stepwise variable selection driver.

Algorithm:
    Step 0 records the empty model with every variable as a candidate.
    Each pass then
        1. takes the best candidate from the latest step's "not in
           analysis" list and enters it if it passes the entry criterion,
        2. takes the worst included variable from the latest step's "in
           analysis" list, skipping the variable entered in this pass,
           and removes it if it passes the removal criterion.
    Every entry and every removal is recorded as its own step. The loop
    ends after a pass that changes nothing, or when the number of
    recorded steps reaches max_steps (default 2 * number of variables).

The loop itself is sequential; only the per-candidate evaluations inside
a step fan out through ordered_map.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydiscriminant.core.exceptions import ConfigurationError, ValidationError
from pydiscriminant.core.tracing import NullTracer, Tracer
from pydiscriminant.discriminant._common import StepRecord, StepwiseParams
from pydiscriminant.discriminant._criteria import (
    MethodType,
    analyze_variables_in_model,
    analyze_variables_not_in_model,
    find_best_variable_to_enter,
    find_worst_variable_to_remove,
    passes_entry,
    passes_removal,
)
from pydiscriminant.discriminant._distance import pairwise_comparisons
from pydiscriminant.discriminant._matrix import f_p_value
from pydiscriminant.discriminant._significance import (
    overall_f_statistic,
    overall_wilks_lambda,
)
from pydiscriminant.discriminant.config import DiscriminantConfig
from pydiscriminant.discriminant.design import AnalyzedDataset

logger = logging.getLogger(__name__)

INSUFFICIENT_NOTE = "d. F level, tolerance, or VIN insufficient for further computation."


class _StepRecorder:
    """Builds StepRecords for successive states of the included list."""

    def __init__(
        self,
        dataset: AnalyzedDataset,
        candidates: Sequence[str],
        method: MethodType,
        config: DiscriminantConfig,
        tracer: Tracer,
    ):
        self.dataset = dataset
        self.candidates = list(candidates)
        self.method = method
        self.config = config
        self.tracer = tracer

    def record(
        self,
        step: int,
        action: str | None,
        variable: str | None,
        included: Sequence[str],
    ) -> StepRecord:
        ds, cfg = self.dataset, self.config
        included = list(included)
        n, g = ds.total_cases, ds.num_groups

        wilks = overall_wilks_lambda(ds, included)
        f, df1, df2, df3 = overall_f_statistic(wilks, len(included), g, n)
        exact_df1, exact_df2 = df1, df3 - df1 + 1
        significance = f_p_value(f, exact_df1, exact_df2) if included else 1.0

        excluded = [v for v in self.candidates if v not in included]
        in_analysis = analyze_variables_in_model(
            ds, included, self.method,
            epsilon=cfg.epsilon, n_jobs=cfg.n_jobs, tracer=self.tracer,
        )
        not_in_analysis = analyze_variables_not_in_model(
            excluded, ds, included, self.method, cfg.method,
            epsilon=cfg.epsilon, n_jobs=cfg.n_jobs, tracer=self.tracer,
        )
        pairwise = None
        if cfg.method.pairwise and included:
            pairwise = pairwise_comparisons(
                ds, included, step, epsilon=cfg.epsilon, n_jobs=cfg.n_jobs,
            )

        rec = StepRecord(
            step=step,
            action=action,
            variable=variable,
            wilks_lambda=wilks,
            f_value=f,
            df1=df1,
            df2=df2,
            df3=df3,
            exact_df1=exact_df1,
            exact_df2=exact_df2,
            significance=significance,
            included=tuple(included),
            variables_in_analysis=tuple(in_analysis),
            variables_not_in_analysis=tuple(not_in_analysis),
            pairwise_comparisons=pairwise,
        )
        self.tracer.event(
            'step_completed', step=step, action=action, variable=variable,
            wilks_lambda=wilks, included=tuple(included),
        )
        return rec


def _notes(config: DiscriminantConfig, max_steps: int) -> tuple[str, ...]:
    m = config.method
    notes = [f"a. Maximum number of steps is {max_steps}."]
    if m.f_value:
        notes.append(f"b. Minimum partial F to enter is {m.f_entry}.")
        notes.append(f"c. Maximum partial F to remove is {m.f_removal}.")
    elif m.f_probability:
        notes.append(f"b. Maximum significance of F to enter is {m.p_entry}.")
        notes.append(f"c. Minimum significance of F to remove is {m.p_removal}.")
    notes.append(INSUFFICIENT_NOTE)
    return tuple(notes)


def criterion_warnings(config: DiscriminantConfig) -> list[str]:
    """Warnings for entry/removal thresholds that invite cycling."""
    m = config.method
    out = []
    if m.f_value and m.f_entry <= m.f_removal:
        out.append(
            f"f_entry ({m.f_entry}) <= f_removal ({m.f_removal}): variables may "
            f"enter and be removed repeatedly"
        )
    if m.f_probability and m.p_entry >= m.p_removal:
        out.append(
            f"p_entry ({m.p_entry}) >= p_removal ({m.p_removal}): variables may "
            f"enter and be removed repeatedly"
        )
    return out


def run_stepwise(
    dataset: AnalyzedDataset,
    config: DiscriminantConfig,
    *,
    tracer: Tracer | None = None,
) -> tuple[StepwiseParams, list[str]]:
    """
    Run stepwise variable selection.

    Args:
        dataset: Analyzed dataset
        config: Configuration; main.stepwise must be set
        tracer: Receives dataset/step checkpoint events

    Returns:
        (StepwiseParams, warnings)

    Raises:
        ConfigurationError: If main.stepwise is not set
        ValidationError: If fewer than two groups are present
    """
    if not config.main.stepwise:
        raise ConfigurationError(
            "main.stepwise: stepwise statistics requested but stepwise "
            "selection is not enabled",
            option='main.stepwise',
        )
    if dataset.num_groups < 2:
        raise ValidationError(
            f"stepwise selection needs at least 2 groups, got {dataset.num_groups}"
        )

    tracer = tracer if tracer is not None else NullTracer()
    method = MethodType.from_options(config.method)
    options = config.method
    candidates = list(dataset.variables)
    max_steps = options.max_steps or 2 * len(candidates)
    if options.f_value:
        criterion = 'f_value'
    elif options.f_probability:
        criterion = 'f_probability'
    else:
        criterion = 'none'

    n, g = dataset.total_cases, dataset.num_groups
    recorder = _StepRecorder(dataset, candidates, method, config, tracer)
    included: list[str] = []
    history = [recorder.record(0, None, None, included)]
    warnings = criterion_warnings(config)
    hit_cap = False

    if criterion == 'none':
        logger.debug("run_stepwise: no entry criterion selected, reporting step 0 only")
    else:
        while True:
            if len(history) - 1 >= max_steps:
                hit_cap = True
                break
            changed = False
            entered = None

            best = find_best_variable_to_enter(
                history[-1].variables_not_in_analysis, method, options.v_enter
            )
            if best is not None and passes_entry(best.f_to_enter, options, g, n):
                included.append(best.variable)
                entered = best.variable
                history.append(recorder.record(len(history), 'Entered', entered, included))
                changed = True
                if len(history) - 1 >= max_steps:
                    hit_cap = True
                    break

            if len(included) > 1:
                worst = find_worst_variable_to_remove(
                    history[-1].variables_in_analysis, method, exclude=entered
                )
                if worst is not None and passes_removal(worst.f_to_remove, options, g, n):
                    included.remove(worst.variable)
                    history.append(
                        recorder.record(len(history), 'Removed', worst.variable, included)
                    )
                    changed = True

            if not changed:
                break

    if hit_cap:
        warnings.append(f"stepwise selection stopped at the maximum of {max_steps} steps")
        logger.debug("run_stepwise: step cap %d reached", max_steps)

    params = StepwiseParams(
        steps=tuple(history),
        final_variables=tuple(included),
        method=method.value,
        criterion=criterion,
        max_steps=max_steps,
        hit_step_cap=hit_cap,
        note=_notes(config, max_steps),
    )
    return params, warnings
