"""
quest_handler.py
----------------

QUEST Bayesian adaptive staircase (Watson & Pelli, 1983).

Model
-----
The observer's threshold ``t`` is unknown; a Gaussian prior centred on
``start_val`` with SD ``start_val_sd`` is kept on a discrete grid of
``grain`` spacing. The probability of a correct response at intensity
``x`` is a Weibull psychometric function of ``x - t``::

    p(x - t) = delta * gamma
               + (1 - delta) * (1 - (1 - gamma) * exp(-10 ** (beta * (x - t + x_thr))))

where ``x_thr`` shifts the curve so that ``p(0) = p_threshold``. Each
response multiplies the posterior by the likelihood of that response, and
the next intensity is read from the posterior (quantile, mean or mode).

Notes
-----
- Posterior arithmetic uses jax.numpy on the host; arrays are small
  (a few hundred grid points) so nothing is jit-compiled.
- The default quantile order is the one maximizing the expected
  information of the next trial, as in Watson & Pelli's QUEST.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any

import jax.numpy as jnp

from psytimeline.data.staircase import validate_response
from psytimeline.data.trial_handler import TrialHandler, TrialMethod
from psytimeline.errors import ConfigurationError

logger = logging.getLogger(__name__)

_EPS = 1e-14


class QuestMethod(Enum):
    """Posterior statistic used as the next intensity."""

    QUANTILE = "quantile"
    MEAN = "mean"
    MODE = "mode"

    @classmethod
    def parse(cls, method: QuestMethod | str) -> QuestMethod:
        if isinstance(method, cls):
            return method
        if isinstance(method, str):
            for member in cls:
                if method.lower() == member.value:
                    return member
        raise ConfigurationError(
            f"unknown QUEST method: {method!r}, expected one of {[m.name for m in cls]}"
        )


class QuestHandler(TrialHandler):
    """
    QUEST adaptive staircase.

    Parameters
    ----------
    start_val : float
        Prior guess of the threshold.
    start_val_sd : float
        SD of the prior guess. Required.
    p_threshold : float, default=0.82
        Performance level defining the threshold.
    n_trials : int, optional
        Number of responses after which the staircase is finished.
    stop_interval : float, optional
        Finish once the 5%-95% confidence interval is narrower than this.
    method : QuestMethod or str, default=QuestMethod.QUANTILE
        Posterior statistic used as the next intensity.
    beta : float, default=3.5
        Slope of the psychometric function.
    delta : float, default=0.01
        Lapse rate (fraction of blind presses).
    gamma : float, default=0.5
        Guess rate (performance at zero intensity).
    grain : float, default=0.01
        Grid spacing of the posterior.
    intensity_range : float, optional
        Width of the posterior grid. Defaults to ``500 * grain``.
    min_val, max_val : float, optional
        Bounds of the presented intensity.
    var_name : str, default="intensity"
        Key of the intensity in the trial records.
    name : str, optional
        Staircase name, prefix of logged responses.
    experiment : object, optional
        Data recorder exposing ``add_data(key, value)``.
    from_multi_stair : bool, default=False
        Whether the staircase is run by a MultiStairHandler.
    extra_args : dict, optional
        Extra condition keys carried with the staircase.

    Examples
    --------
    >>> quest = QuestHandler(start_val=0.5, start_val_sd=0.2, n_trials=20)
    >>> before = quest.intensity
    >>> quest.add_response(1)
    >>> quest.intensity < before
    True
    """

    Method = QuestMethod

    def __init__(
        self,
        start_val: float,
        start_val_sd: float | None = None,
        p_threshold: float = 0.82,
        n_trials: int | None = None,
        stop_interval: float | None = None,
        method: QuestMethod | str = QuestMethod.QUANTILE,
        beta: float = 3.5,
        delta: float = 0.01,
        gamma: float = 0.5,
        grain: float = 0.01,
        intensity_range: float | None = None,
        min_val: float | None = None,
        max_val: float | None = None,
        var_name: str = "intensity",
        name: str | None = None,
        experiment: Any = None,
        auto_log: bool = True,
        from_multi_stair: bool = False,
        extra_args: dict | None = None,
    ):
        if start_val is None:
            raise ConfigurationError("start_val is required")
        if start_val_sd is None:
            raise ConfigurationError("start_val_sd is required by QuestHandler")
        if start_val_sd <= 0:
            raise ConfigurationError(f"start_val_sd must be positive, got {start_val_sd}")
        if not 0.0 < p_threshold < 1.0:
            raise ConfigurationError(f"p_threshold must be in (0, 1), got {p_threshold}")
        if n_trials is None and stop_interval is None:
            raise ConfigurationError("one of n_trials or stop_interval is required")
        if grain <= 0:
            raise ConfigurationError(f"grain must be positive, got {grain}")

        planned = max(int(n_trials or 0), 0)
        super().__init__(
            trial_list=[None] * planned,
            n_reps=1,
            method=TrialMethod.SEQUENTIAL,
            seed=0,
            name=name,
            experiment=experiment,
            auto_log=auto_log and not from_multi_stair,
        )
        self.n_stim = self.n_total = self.n_remaining = planned

        self._add_attribute("start_val", float(start_val))
        self._add_attribute("start_val_sd", float(start_val_sd))
        self._add_attribute("p_threshold", float(p_threshold))
        self._add_attribute("n_trials", n_trials)
        self._add_attribute("stop_interval", stop_interval)
        self._add_attribute("quest_method", QuestMethod.parse(method))
        self._add_attribute("beta", float(beta))
        self._add_attribute("delta", float(delta))
        self._add_attribute("gamma", float(gamma))
        self._add_attribute("grain", float(grain))
        self._add_attribute("intensity_range", intensity_range)
        self._add_attribute("min_val", min_val)
        self._add_attribute("max_val", max_val)
        self._add_attribute("var_name", var_name)
        self._add_attribute("from_multi_stair", from_multi_stair)
        self._add_attribute("extra_args", extra_args, {})

        self._data: list[int] = []
        self._values: list[float] = []
        self._create_posterior()
        self._quest_value = self._clamp(self.get_quest_value())

    # ------------------------------------------------------------------
    # POSTERIOR
    # ------------------------------------------------------------------
    def _create_posterior(self) -> None:
        grain = self.grain
        if self.intensity_range is None:
            dim = 500
        else:
            dim = 2 * math.ceil(self.intensity_range / grain / 2)
        self._dim = dim

        # threshold grid, relative to the prior guess
        self._i = jnp.arange(-dim // 2, dim // 2 + 1)
        self._x = self._i * grain
        pdf = jnp.exp(-0.5 * (self._x / self.start_val_sd) ** 2)
        self._pdf = pdf / jnp.sum(pdf)

        # psychometric function on intensity - threshold, twice as wide
        x2 = jnp.arange(-dim, dim + 1) * grain
        p2 = self._psychometric(x2, 0.0)
        x_threshold = jnp.interp(self.p_threshold, p2, x2)
        p2 = self._psychometric(x2, x_threshold)
        self._p2 = p2
        # likelihood table, row = response
        self._s2 = jnp.stack([(1.0 - p2)[::-1], p2[::-1]])

        p_low, p_high = float(p2[0]), float(p2[-1])
        p_e = (
            p_high * math.log(p_high + _EPS)
            - p_low * math.log(p_low + _EPS)
            + (1 - p_high + _EPS) * math.log(1 - p_high + _EPS)
            - (1 - p_low + _EPS) * math.log(1 - p_low + _EPS)
        )
        p_e = 1.0 / (1.0 + math.exp(p_e / (p_low - p_high)))
        self._quantile_order = (p_e - p_low) / (p_high - p_low)

    def _psychometric(self, x, shift):
        delta, gamma = self.delta, self.gamma
        return delta * gamma + (1 - delta) * (
            1 - (1 - gamma) * jnp.exp(-(10.0 ** (self.beta * (x + shift))))
        )

    def _update_posterior(self, intensity: float, response: int) -> None:
        n_cols = self._s2.shape[1]
        offset = round((intensity - self.start_val) / self.grain)
        ii = self._dim + self._i - offset
        # intensities off the grid use the nearest edge of the likelihood table
        if int(ii[0]) < 0:
            ii = ii - ii[0]
        if int(ii[-1]) >= n_cols:
            ii = ii + (n_cols - 1 - ii[-1])
        pdf = self._pdf * self._s2[response, ii]
        total = jnp.sum(pdf)
        if not bool(jnp.isfinite(total)) or float(total) <= 0.0:
            raise ValueError(f"{self.name}: posterior degenerated after response {response} at {intensity}")
        self._pdf = pdf / total

    # ------------------------------------------------------------------
    # ESTIMATES
    # ------------------------------------------------------------------
    def quantile(self, quantile_order: float | None = None) -> float:
        """
        Quantile of the threshold posterior.

        Parameters
        ----------
        quantile_order : float, optional
            Defaults to the information-maximizing order.
        """
        if quantile_order is None:
            quantile_order = self._quantile_order
        cumulative = jnp.cumsum(self._pdf)
        # strictly increasing points only, so the inverse is well defined
        index = jnp.nonzero(jnp.diff(cumulative, prepend=-1.0) > 0)[0]
        position = jnp.interp(
            quantile_order * cumulative[-1], cumulative[index], index.astype(float)
        )
        return float(self.start_val + self._x[0] + position * self.grain)

    def mean(self) -> float:
        """Posterior mean of the threshold."""
        return float(self.start_val + jnp.sum(self._pdf * self._x) / jnp.sum(self._pdf))

    def sd(self) -> float:
        """Posterior SD of the threshold."""
        total = jnp.sum(self._pdf)
        mean = jnp.sum(self._pdf * self._x) / total
        return float(jnp.sqrt(jnp.sum(self._pdf * self._x**2) / total - mean**2))

    def mode(self) -> float:
        """Posterior mode of the threshold."""
        return float(self.start_val + self._x[jnp.argmax(self._pdf)])

    def conf_interval(self, width: float = 0.95) -> tuple[float, float]:
        """Central credible interval of the threshold posterior."""
        tail = (1.0 - width) / 2.0
        return self.quantile(tail), self.quantile(1.0 - tail)

    def get_quest_value(self) -> float:
        """Intensity suggested by the posterior, according to ``quest_method``."""
        if self.quest_method is QuestMethod.MEAN:
            return self.mean()
        if self.quest_method is QuestMethod.MODE:
            return self.mode()
        return self.quantile()

    @property
    def intensity(self) -> float:
        return self._quest_value

    @property
    def data(self) -> list[int]:
        return list(self._data)

    @property
    def values(self) -> list[float]:
        return list(self._values)

    def _clamp(self, value: float) -> float:
        if self.min_val is not None:
            value = max(value, self.min_val)
        if self.max_val is not None:
            value = min(value, self.max_val)
        return value

    # ------------------------------------------------------------------
    # RESPONSES
    # ------------------------------------------------------------------
    def add_response(self, response: int, value: float | None = None, do_add_data: bool = True) -> None:
        """
        Record a response and update the posterior.

        Parameters
        ----------
        response : {0, 1}
            1 = correct, 0 = incorrect.
        value : float, optional
            Intensity actually presented, if it differs from the suggested one.
        do_add_data : bool, default=True
            Log ``<name>.response`` to the data recorder.

        Raises
        ------
        InvalidResponse
            If ``response`` is neither 0 nor 1.
        """
        validate_response(response)
        response = int(response)

        if do_add_data:
            self.add_data(f"{self.name}.response", response)

        tested = self._quest_value if value is None else float(value)
        self._data.append(response)
        self._values.append(tested)
        self._update_posterior(tested, response)
        self._quest_value = self._clamp(self.get_quest_value())

        if self.n_trials is not None and len(self._data) >= self.n_trials:
            self.finished = True
        elif self.stop_interval is not None:
            low, high = self.conf_interval(0.9)
            if high - low < self.stop_interval:
                self.finished = True
        if self.finished:
            logger.debug("%s: finished after %d trials, mean=%.4g", self.name, len(self._data), self.mean())

    # ------------------------------------------------------------------
    # ITERATION
    # ------------------------------------------------------------------
    def _advance(self) -> tuple[bool, Any]:
        if self.finished:
            self.this_trial = None
            return False, None

        self.this_n += 1
        self.this_trial_n = self.this_n
        self.ran = True
        self.n_remaining = max(self.n_total - (self.this_n + 1), 0)
        record = {self.var_name: self._quest_value}
        if self.this_n < len(self.trial_list):
            self.trial_list[self.this_n] = record
        else:
            self.trial_list.append(record)
        self.this_trial = record

        if self.auto_log:
            logger.info("%s: trial %d, %s=%s", self.name, self.this_n, self.var_name, self._quest_value)
        return True, self.this_trial
