import matplotlib.patches as mpatches
import matplotlib.pyplot as plt


class SimulationVisualizer:
    """
    Визуализатор DES-симуляции кеша ресурсов:
      - plot_cache_size: размер кеша во времени и моменты очистки
      - plot_entry_lifetimes: время жизни записей по ключам (создание → вытеснение)
      - plot_view_timeline: что видно на экране и индикатор загрузки
    """

    def __init__(self, metrics: dict):
        self.metrics = metrics
        self.events = metrics.get("events", [])
        self.settlements = metrics.get("settlements_detail", [])
        self.view_changes = metrics.get("view_changes", [])
        self.busy_changes = metrics.get("busy_changes", [])

        all_times = [e["time"] for e in self.events] + \
                    [s["finish"] for s in self.settlements] + \
                    [v["time"] for v in self.view_changes]
        self.t_end = max(all_times) if all_times else 0.0

        self.view_colors = {
            "idle": "#e0e0e0",
            "fallback": "#ffc107",
            "data": "#4caf50",
            "error": "#f44336",
        }
        self.view_labels = {
            "idle": "Нет запроса",
            "fallback": "Заглушка",
            "data": "Данные",
            "error": "Ошибка",
        }
        self.outcome_colors = {
            "pending": "#9e9e9e",
            "resolved": "#4caf50",
            "rejected": "#f44336",
        }

    def plot_cache_size(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 3))

        points = [(e["time"], e["cache_size"]) for e in self.events if e["event"] != "final_cache_size"]
        if points:
            times, sizes = zip(*points)
            ax.step(times, sizes, where="post", color="#1976d2")

        for e in self.events:
            if e["event"] == "sweep":
                ax.axvline(e["time"], color="gray", linestyle=":", linewidth=0.8)

        ax.set_xlim(0, self.t_end or 1.0)
        ax.set_xlabel("Время, мс")
        ax.set_ylabel("Записей")
        ax.set_title("Размер кеша (пунктир — очистка)")
        return ax

    def _lifetimes(self):
        """(key, start, end, outcome) для каждой записи кеша."""
        open_entries = {}
        spans = []
        for e in self.events:
            key = e["key"]
            if e["event"] == "create":
                open_entries[key] = e["time"]
            elif e["event"] == "evict" and key in open_entries:
                spans.append((key, open_entries.pop(key), e["time"]))
        for key, start in open_entries.items():
            spans.append((key, start, self.t_end))

        result = []
        for key, start, end in spans:
            outcome = next(
                (s["outcome"] for s in self.settlements
                 if s["key"] == key and abs(s["start"] - start) < 1e-6),
                "pending",
            )
            result.append((key, start, end, outcome))
        return result

    def plot_entry_lifetimes(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 4))

        spans = self._lifetimes()
        keys = sorted({s[0] for s in spans})
        lane = {k: i for i, k in enumerate(keys)}
        height = 0.4

        for key, start, end, outcome in spans:
            ax.broken_barh(
                [(start, max(end - start, 1e-9))],
                (lane[key] - height / 2, height),
                facecolors=self.outcome_colors[outcome], edgecolors="black"
            )

        hits = [e for e in self.events if e["event"] == "hit" and e["key"] in lane]
        ax.scatter([e["time"] for e in hits], [lane[e["key"]] for e in hits],
                   marker="|", color="black", s=80)

        ax.set_ylim(-0.5, max(len(keys) - 0.5, 0.5))
        ax.set_xlim(0, self.t_end or 1.0)
        ax.set_yticks(range(len(keys)))
        ax.set_yticklabels(keys)
        ax.set_xlabel("Время, мс")
        ax.set_title("Время жизни записей (| — повторное обращение)")

        patches = [mpatches.Patch(color=c, label=k) for k, c in self.outcome_colors.items()]
        ax.legend(handles=patches, bbox_to_anchor=(1.02, 1), loc="upper left")
        return ax

    def plot_view_timeline(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 2))

        y_view, y_busy = 1, 0
        height = 0.4

        points = [{"time": 0.0, "state": "idle"}] + self.view_changes + \
                 [{"time": self.t_end, "state": None}]
        for prev, curr in zip(points, points[1:]):
            ax.broken_barh(
                [(prev["time"], curr["time"] - prev["time"])],
                (y_view - height / 2, height),
                facecolors=self.view_colors[prev["state"]], edgecolors="none"
            )

        busy_start = None
        for change in self.busy_changes:
            if change["busy"]:
                busy_start = change["time"]
            elif busy_start is not None:
                ax.broken_barh([(busy_start, change["time"] - busy_start)],
                               (y_busy - height / 2, height), facecolors="#7e57c2")
                busy_start = None
        if busy_start is not None:
            ax.broken_barh([(busy_start, self.t_end - busy_start)],
                           (y_busy - height / 2, height), facecolors="#7e57c2")

        ax.set_ylim(-0.5, 1.5)
        ax.set_xlim(0, self.t_end or 1.0)
        ax.set_yticks([y_view, y_busy])
        ax.set_yticklabels(["Экран", "Индикатор"])
        ax.set_xlabel("Время, мс")
        ax.set_title("Состояние экрана")

        patches = [
            mpatches.Patch(color=self.view_colors[k], label=self.view_labels[k])
            for k in self.view_colors
        ]
        ax.legend(handles=patches, bbox_to_anchor=(1.02, 1), loc="upper left")
        return ax

    def build_figure(self):
        fig = plt.figure(constrained_layout=True, figsize=(14, 9))
        gs = fig.add_gridspec(3, 1, height_ratios=[1, 2, 1])

        self.plot_cache_size(fig.add_subplot(gs[0, 0]))
        self.plot_entry_lifetimes(fig.add_subplot(gs[1, 0]))
        self.plot_view_timeline(fig.add_subplot(gs[2, 0]))
        return fig

    def show_all(self):
        """
        Выводит все графики на одной фигуре.
        """
        self.build_figure()
        plt.show()
