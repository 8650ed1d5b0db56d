# helpers/logger.py
import csv, json, datetime, pathlib

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt


class RunLogger:
    """
    Per-run output directory <root>/<tag>_<timestamp>/ holding the training
    parameters, one history row per epoch (CSV and JSON) and the
    monitoring curves drawn from Network.sgd's history.
    """

    def __init__(self, root="runs", tag="run"):
        stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        self.dir = pathlib.Path(root) / f"{tag}_{stamp}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.params_path = self.dir / "params.json"
        self.csv_path = self.dir / "history.csv"
        self.json_path = self.dir / "history.json"
        self.metrics = []
        self._fields = None

    # ---------- history ----------
    def log_params(self, params):
        self.params_path.write_text(str(params))

    def log_epoch(self, epoch, **values):
        row = {"epoch": int(epoch)}
        row.update((key, float(value)) for key, value in values.items())
        self.metrics.append(row)
        # columns are fixed by the first epoch; later rows leave missing ones empty
        if self._fields is None:
            self._fields = list(row)
        new_file = not self.csv_path.exists()
        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=self._fields, restval="", extrasaction="ignore")
            if new_file:
                writer.writeheader()
            writer.writerow(row)

    def save_json(self):
        with open(self.json_path, "w") as f:
            json.dump(self.metrics, f, indent=2)

    # ---------- plotting ----------
    def _plot_series(self, history, keys, ylabel, filename, subdir):
        series = [(key, history.get(key, [])) for key in keys]
        if not any(values for _, values in series):
            return None
        target = self.dir / subdir
        target.mkdir(parents=True, exist_ok=True)

        fig, ax = plt.subplots()
        for key, values in series:
            if values:
                ax.plot(values, label=key.replace("_", " "))
        ax.set_xlabel("Monitoring step")
        ax.set_ylabel(ylabel)
        ax.set_title(filename)
        ax.legend()
        fig.tight_layout()
        path = target / f"{filename}.png"
        fig.savefig(path, dpi=160)
        plt.close(fig)
        return path

    def plot_cost(self, history, tag="run", subdir="plots"):
        """Training and evaluation cost curves, or None if neither was monitored."""
        return self._plot_series(history, ("training_cost", "evaluation_cost"),
                                 "Cost", f"cost_curve_{tag}", subdir)

    def plot_accuracy(self, history, tag="run", subdir="plots"):
        return self._plot_series(history, ("training_accuracy", "evaluation_accuracy"),
                                 "Correct classifications", f"accuracy_{tag}", subdir)

    def plot_all(self, history, tag="run", subdir="plots"):
        """Paths of every curve that had monitored values."""
        paths = [self.plot_cost(history, tag, subdir), self.plot_accuracy(history, tag, subdir)]
        return [path for path in paths if path is not None]
