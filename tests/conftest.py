"""Shared fixtures: small simulated assay tables."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402


def make_observations(
    n_substrates: int = 8,
    ddg_ranges=(2.0, 4.0),
    total_species=(10,),
    dummies=(50, 100),
    depths=(200, 5000),
    reps=(1, 2),
    seed: int = 7,
) -> pd.DataFrame:
    """Build a table shaped like the simulator output.

    Each condition has ``n_substrates`` substrates at unit input
    concentration plus one weakly binding marker at concentration ``dummy``.
    Read counts are multinomial draws from each sublibrary.
    """
    rng = np.random.default_rng(seed)
    rows = []
    for ddg_range in ddg_ranges:
        for total in total_species:
            for dummy in dummies:
                energies = np.linspace(-ddg_range / 2, ddg_range / 2, n_substrates)
                k_d = np.append(np.exp(energies / 0.593), 1e3)
                input_conc = np.append(np.ones(n_substrates), float(dummy))
                bound_conc = input_conc / (1.0 + k_d)
                unbound_conc = input_conc - bound_conc
                is_dummy = np.append(np.zeros(n_substrates, dtype=bool), True)
                for depth in depths:
                    for rep in reps:
                        counts = {
                            name: rng.multinomial(depth, conc / conc.sum())
                            for name, conc in (
                                ("input_count", input_conc),
                                ("bound_count", bound_conc),
                                ("unbound_count", unbound_conc),
                            )
                        }
                        for i in range(n_substrates + 1):
                            rows.append(
                                {
                                    "ddG_range": ddg_range,
                                    "total_species": total,
                                    "dummy": dummy,
                                    "depth": depth,
                                    "rep": rep,
                                    "k_d": k_d[i],
                                    "input_conc": input_conc[i],
                                    "bound_conc": bound_conc[i],
                                    "unbound_conc": unbound_conc[i],
                                    "input_count": int(counts["input_count"][i]),
                                    "bound_count": int(counts["bound_count"][i]),
                                    "unbound_count": int(counts["unbound_count"][i]),
                                    "dummy_bool": bool(is_dummy[i]),
                                }
                            )
    return pd.DataFrame(rows)


@pytest.fixture
def observations() -> pd.DataFrame:
    return make_observations()


@pytest.fixture
def observations_csv(tmp_path, observations) -> Path:
    """Write the table the way R's write.csv does: row names and TRUE/FALSE."""
    path = tmp_path / "simulated.csv"
    table = observations.copy()
    table["dummy_bool"] = table["dummy_bool"].map({True: "TRUE", False: "FALSE"})
    table.index = table.index + 1
    table.to_csv(path, index=True)
    return path
