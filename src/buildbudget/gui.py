"""Desktop interface for building AI-assisted construction budgets.

The window collects project parameters in a sidebar form and shows the
returned budget on the right, where individual line items can be toggled in
and out of the total. All session state lives in
:class:`~buildbudget.session.SessionStateManager`, which runs on an asyncio
loop in a background thread; the Tk side only dispatches intents to that loop
and renders the :class:`~buildbudget.session.SessionView` objects it
publishes through a queue.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import math
import mimetypes
import os
import queue
import threading
from concurrent.futures import Future
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Tuple

import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from dotenv import load_dotenv

from .config import Config, load_config
from .gateway import OpenAIEstimationGateway
from .models import (
    SCOPE_LABELS,
    CostScenario,
    DemolitionType,
    ProjectFile,
    ProjectParams,
    ScopeToggle,
    ShellDeliveryType,
    SitePrepType,
)
from .reporting import format_currency, write_budget_pdf
from .session import SessionStateManager, SessionStatus, SessionView

LOGGER = logging.getLogger(__name__)

AREA_LABELS: Tuple[Tuple[str, str], ...] = (
    ("existing_sqft", "Existing Building SF"),
    ("existing_site_sqft", "Existing Site SF"),
    ("proposed_sqft", "Proposed Building SF"),
    ("site_sqft", "Proposed Site SF"),
)


def parse_area(text: str) -> float:
    """Parse a square-footage entry; unparseable text becomes NaN for the session to reject."""
    cleaned = str(text).replace(",", "").strip()
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        return math.nan


def describe_status(view: SessionView) -> Tuple[str, str]:
    """Return the (title, detail) pair shown in the status strip."""
    if view.status is SessionStatus.PENDING:
        return "Generating Quote", f"AI quantities & material take-off... {round(view.progress or 0)}%"
    if view.status is SessionStatus.FAILED:
        return "Estimate failed", view.error or "The estimate could not be produced."
    if view.status is SessionStatus.READY and view.total is not None:
        return "Estimate ready", f"Total estimated project budget {format_currency(view.total)}"
    return "Ready to Estimate", "Configure your project and generate a budget breakdown."


class SessionLoop:
    """Runs an asyncio event loop on a daemon thread for the session."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="buildbudget-session", daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> None:
        self._thread.start()

    def call(self, func: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(func, *args)

    def run(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self, timeout: float = 2.0) -> None:
        if not self._thread.is_alive():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)


class BudgetApp:
    """Tk-based interface over a single estimating session."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.root = tk.Tk()
        self.root.title("BuildBudget Pro - Construction Estimation Suite")
        self.root.geometry("1180x760")
        self.root.minsize(960, 600)
        self._configure_theme()

        self._queue: "queue.Queue[SessionView]" = queue.Queue()
        self._loop = SessionLoop()
        self.session = SessionStateManager(OpenAIEstimationGateway(config), config)
        self._unsubscribe = self.session.subscribe(self._queue.put)
        self._view: SessionView = self.session.view()
        self._item_lookup: Dict[str, Tuple[str, str]] = {}

        self._draft = ProjectParams()
        self.name_var = tk.StringVar(value=self._draft.name)
        self.location_var = tk.StringVar(value=self._draft.location)
        self.scenario_var = tk.StringVar(value=self._draft.scenario.value)
        self.shell_var = tk.StringVar(value=self._draft.shell_delivery.value)
        self.area_vars: Dict[str, tk.StringVar] = {
            name: tk.StringVar(value="0") for name, _ in AREA_LABELS
        }
        self.scope_vars: Dict[ScopeToggle, tk.BooleanVar] = {
            toggle: tk.BooleanVar(value=self._draft.scope_enabled(toggle)) for toggle in ScopeToggle
        }
        self.demolition_vars = {kind: tk.BooleanVar(value=False) for kind in DemolitionType}
        self.site_prep_vars = {kind: tk.BooleanVar(value=False) for kind in SitePrepType}
        self.files_var = tk.StringVar(value="No files attached.")
        self.status_title_var = tk.StringVar()
        self.status_detail_var = tk.StringVar()
        self.total_var = tk.StringVar(value=format_currency(0))
        self.metrics_var = tk.StringVar(value="")
        self.error_var = tk.StringVar(value="")
        self.progress_var = tk.DoubleVar(value=0.0)

        self._build_ui()
        self._render(self._view, force=True)
        self._loop.start()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.after(100, self._poll_queue)

    # ---------------------------------------------------------------- Theme --
    def _configure_theme(self) -> None:
        style = ttk.Style(self.root)
        try:
            style.theme_use("clam")
        except tk.TclError:
            pass
        style.configure("Sidebar.TFrame", background="#ffffff")
        style.configure("Banner.TLabel", background="#fffbeb", foreground="#b45309", padding=6)
        style.configure("Error.TLabel", background="#fef2f2", foreground="#b91c1c", padding=6)
        style.configure("Total.TLabel", font=("Segoe UI", 26, "bold"))
        style.configure("Heading.TLabel", font=("Segoe UI", 11, "bold"))

    # ------------------------------------------------------------------- UI --
    def _build_ui(self) -> None:
        self.root.columnconfigure(1, weight=1)
        self.root.rowconfigure(1, weight=1)

        header = ttk.Frame(self.root, padding=(16, 10))
        header.grid(row=0, column=0, columnspan=2, sticky="ew")
        ttk.Label(header, text="BuildBudget Pro", style="Heading.TLabel").pack(side=tk.LEFT)
        if not self.config.has_credentials:
            ttk.Label(header, text="Missing API Key", style="Banner.TLabel").pack(side=tk.RIGHT)

        self._build_form(ttk.Frame(self.root, padding=16, style="Sidebar.TFrame"))
        self._build_results(ttk.Frame(self.root, padding=16))

    def _build_form(self, form: ttk.Frame) -> None:
        form.grid(row=1, column=0, sticky="nsw")
        ttk.Label(form, text="Project Parameters", style="Heading.TLabel").grid(row=0, column=0, columnspan=2, sticky="w")

        row = 1
        for label, var in (("Project Name", self.name_var), ("Location", self.location_var)):
            ttk.Label(form, text=label).grid(row=row, column=0, sticky="w", pady=2)
            ttk.Entry(form, textvariable=var, width=28).grid(row=row, column=1, sticky="ew", pady=2)
            row += 1
        ttk.Label(form, text="Scenario").grid(row=row, column=0, sticky="w", pady=2)
        ttk.Combobox(
            form,
            textvariable=self.scenario_var,
            values=[s.value for s in CostScenario],
            state="readonly",
        ).grid(row=row, column=1, sticky="ew", pady=2)
        row += 1
        for name, label in AREA_LABELS:
            ttk.Label(form, text=label).grid(row=row, column=0, sticky="w", pady=2)
            ttk.Entry(form, textvariable=self.area_vars[name], width=14).grid(row=row, column=1, sticky="w", pady=2)
            row += 1

        for toggle in ScopeToggle:
            ttk.Checkbutton(
                form,
                text=SCOPE_LABELS[toggle],
                variable=self.scope_vars[toggle],
                command=lambda t=toggle: self._on_scope_toggled(t),
            ).grid(row=row, column=0, columnspan=2, sticky="w", pady=(6, 0))
            row += 1
            detail = ttk.Frame(form, padding=(18, 0, 0, 0))
            detail.grid(row=row, column=0, columnspan=2, sticky="w")
            row += 1
            self._build_scope_detail(toggle, detail)

        files_row = ttk.Frame(form)
        files_row.grid(row=row, column=0, columnspan=2, sticky="ew", pady=(8, 0))
        ttk.Button(files_row, text="Attach Files...", command=self._attach_files).pack(side=tk.LEFT)
        ttk.Label(files_row, textvariable=self.files_var, wraplength=180).pack(side=tk.LEFT, padx=6)
        row += 1

        self.generate_button = ttk.Button(form, text="Generate AI Estimate", command=self._on_generate)
        self.generate_button.grid(row=row, column=0, columnspan=2, sticky="ew", pady=(12, 4))
        row += 1

        self.error_frame = ttk.Frame(form)
        self.error_frame.grid(row=row, column=0, columnspan=2, sticky="ew")
        ttk.Label(self.error_frame, textvariable=self.error_var, style="Error.TLabel", wraplength=260).pack(
            side=tk.LEFT, fill=tk.X, expand=True
        )
        ttk.Button(self.error_frame, text="Dismiss", command=self._on_dismiss_error).pack(side=tk.RIGHT)

    def _build_scope_detail(self, toggle: ScopeToggle, frame: ttk.Frame) -> None:
        if toggle is ScopeToggle.DEMOLITION:
            for kind, var in self.demolition_vars.items():
                ttk.Checkbutton(frame, text=kind.value, variable=var).pack(anchor="w")
        elif toggle is ScopeToggle.SITE_PREP:
            for kind, var in self.site_prep_vars.items():
                ttk.Checkbutton(frame, text=kind.value, variable=var).pack(anchor="w")
        elif toggle is ScopeToggle.STRUCTURE:
            ttk.Combobox(
                frame,
                textvariable=self.shell_var,
                values=[s.value for s in ShellDeliveryType],
                state="readonly",
                width=26,
            ).pack(anchor="w")
        elif toggle is ScopeToggle.CUSTOM_SCOPE:
            self.custom_scope_text = tk.Text(frame, height=3, width=32, wrap="word")
            self.custom_scope_text.pack(anchor="w")

    def _build_results(self, panel: ttk.Frame) -> None:
        panel.grid(row=1, column=1, sticky="nsew")
        panel.columnconfigure(0, weight=1)
        panel.rowconfigure(3, weight=1)

        ttk.Label(panel, textvariable=self.status_title_var, style="Heading.TLabel").grid(row=0, column=0, sticky="w")
        ttk.Label(panel, textvariable=self.status_detail_var).grid(row=1, column=0, sticky="w")
        self.progress_bar = ttk.Progressbar(panel, variable=self.progress_var, maximum=100)
        self.progress_bar.grid(row=1, column=1, columnspan=2, sticky="ew", padx=(12, 0))

        summary = ttk.Frame(panel, padding=(0, 10))
        summary.grid(row=2, column=0, columnspan=3, sticky="ew")
        ttk.Label(summary, textvariable=self.total_var, style="Total.TLabel").pack(side=tk.LEFT)
        ttk.Label(summary, textvariable=self.metrics_var).pack(side=tk.LEFT, padx=16)
        self.export_button = ttk.Button(summary, text="Export PDF...", command=self._on_export)
        self.export_button.pack(side=tk.RIGHT)
        self.undo_button = ttk.Button(summary, text="Undo Change", command=self._on_undo)
        self.undo_button.pack(side=tk.RIGHT, padx=6)

        self.tree = ttk.Treeview(panel, columns=("included", "amount"), show="tree headings", height=14)
        self.tree.heading("#0", text="Budget Item")
        self.tree.heading("included", text="Included")
        self.tree.heading("amount", text="Amount")
        self.tree.column("included", width=80, anchor="center")
        self.tree.column("amount", width=120, anchor="e")
        self.tree.grid(row=3, column=0, columnspan=3, sticky="nsew")
        self.tree.bind("<Double-1>", self._on_tree_activate)
        self.tree.bind("<space>", self._on_tree_activate)

        self.notes = tk.Text(panel, height=10, wrap="word", state="disabled")
        self.notes.grid(row=4, column=0, columnspan=3, sticky="ew", pady=(10, 0))

    # -------------------------------------------------------------- Intents --
    def _on_scope_toggled(self, toggle: ScopeToggle) -> None:
        self._draft = self._draft.with_scope(toggle, self.scope_vars[toggle].get())

    def _attach_files(self) -> None:
        paths = filedialog.askopenfilenames(title="Attach drawings or documents")
        attached: List[ProjectFile] = []
        for raw in paths:
            path = Path(raw)
            try:
                payload = base64.b64encode(path.read_bytes()).decode("ascii")
            except OSError as exc:
                messagebox.showerror("Attach files", f"Unable to read {path.name}: {exc}")
                continue
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            attached.append(ProjectFile(name=path.name, mime_type=mime_type, data=payload))
        self._draft.files = attached
        self.files_var.set(", ".join(f.name for f in attached) or "No files attached.")

    def collect_params(self) -> ProjectParams:
        """Build the submission from the form's edit buffer."""
        return replace(
            self._draft,
            name=self.name_var.get().strip() or "Untitled Project",
            location=self.location_var.get().strip(),
            scenario=CostScenario(self.scenario_var.get()),
            demolition_types=[kind for kind, var in self.demolition_vars.items() if var.get()],
            site_prep_types=[kind for kind, var in self.site_prep_vars.items() if var.get()],
            shell_delivery=ShellDeliveryType(self.shell_var.get()),
            custom_scope=self.custom_scope_text.get("1.0", tk.END).strip(),
            files=list(self._draft.files),
            **{name: parse_area(var.get()) for name, var in self.area_vars.items()},
        )

    def _on_generate(self) -> None:
        params = self.collect_params()
        future = self._loop.run(self.session.submit(params))
        future.add_done_callback(self._log_submit_outcome)

    @staticmethod
    def _log_submit_outcome(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Estimate submission crashed: %s", exc)

    def _on_tree_activate(self, _event: Optional[tk.Event] = None) -> None:
        selection = self.tree.focus()
        target = self._item_lookup.get(selection)
        if target is not None:
            self._loop.call(self.session.toggle_line_item, *target)

    def _on_undo(self) -> None:
        self._loop.call(self.session.undo)

    def _on_dismiss_error(self) -> None:
        self._loop.call(self.session.dismiss_error)

    def _on_export(self) -> None:
        view = self._view
        if view.result is None:
            return
        target = filedialog.asksaveasfilename(
            title="Export budget",
            defaultextension=".pdf",
            filetypes=[("PDF", "*.pdf")],
            initialfile=f"{view.params.name}.pdf",
        )
        if not target:
            return
        try:
            write_budget_pdf(view.result, Path(target), view.params)
        except OSError as exc:
            messagebox.showerror("Export budget", f"Unable to write PDF: {exc}")
            return
        LOGGER.info("Budget exported to %s", target)

    # --------------------------------------------------------------- Render --
    def _poll_queue(self) -> None:
        latest: Optional[SessionView] = None
        try:
            while True:
                latest = self._queue.get_nowait()
        except queue.Empty:
            pass
        finally:
            if latest is not None:
                self._render(latest)
            self.root.after(100, self._poll_queue)

    def _render(self, view: SessionView, force: bool = False) -> None:
        previous, self._view = self._view, view
        title, detail = describe_status(view)
        self.status_title_var.set(title)
        self.status_detail_var.set(detail)

        pending = view.status is SessionStatus.PENDING
        self.generate_button.configure(state=tk.DISABLED if pending else tk.NORMAL)
        self.undo_button.configure(state=tk.NORMAL if view.can_undo and not pending else tk.DISABLED)
        self.export_button.configure(state=tk.NORMAL if view.result is not None else tk.DISABLED)
        if view.progress is None:
            self.progress_bar.grid_remove()
        else:
            self.progress_bar.grid()
            self.progress_var.set(view.progress)

        if view.error:
            self.error_var.set(view.error)
            self.error_frame.grid()
        else:
            self.error_frame.grid_remove()

        if pending:
            return
        if view.snapshot is previous.snapshot and not force:
            return
        self._render_result(view)

    def _render_result(self, view: SessionView) -> None:
        self.tree.delete(*self.tree.get_children())
        self._item_lookup.clear()
        self._set_notes("")
        result = view.result
        if result is None:
            self.total_var.set(format_currency(0))
            self.metrics_var.set("")
            return

        self.total_var.set(format_currency(result.included_total()))
        self.metrics_var.set(
            f"Building $/SF ${result.shell_cost_per_sqft:,.0f}   "
            f"Site $/SF ${result.site_cost_per_sqft:,.0f}   "
            f"Timeline {result.timeline_weeks:g} weeks"
        )
        for category in result.categories:
            parent = self.tree.insert(
                "", tk.END, text=category.name, values=("", format_currency(category.included_total())), open=True
            )
            for item in category.items:
                iid = self.tree.insert(
                    parent,
                    tk.END,
                    text=item.name,
                    values=("yes" if item.included else "no", format_currency(item.amount)),
                )
                self._item_lookup[iid] = (category.id, item.id)

        lines = ["Expert Advice", result.expert_advice, ""]
        if result.risk_factors:
            lines.append("Risk Factors")
            lines.extend(f"- {risk}" for risk in result.risk_factors)
            lines.append("")
        if result.recommended_scopes:
            lines.append("Recommended Scopes")
            lines.extend(
                f"- {scope.name} ({scope.suggested_cost_range}): {scope.importance}"
                for scope in result.recommended_scopes
            )
            lines.append("")
        if result.needed_files:
            lines.append("Helpful Documents")
            lines.extend(f"- {name}" for name in result.needed_files)
        self._set_notes("\n".join(lines).strip())

    def _set_notes(self, text: str) -> None:
        self.notes.configure(state="normal")
        self.notes.delete("1.0", tk.END)
        self.notes.insert("1.0", text)
        self.notes.configure(state="disabled")

    # ---------------------------------------------------------------- Main --
    def _on_close(self) -> None:
        self._unsubscribe()
        try:
            self._loop.run(self.session.aclose()).result(timeout=2.0)
        except Exception as exc:  # pragma: no cover - teardown
            LOGGER.debug("Session teardown incomplete: %s", exc)
        self._loop.stop()
        self.root.destroy()

    def run(self) -> None:  # pragma: no cover - UI loop
        self.root.mainloop()


def main() -> None:  # pragma: no cover - entry point
    load_dotenv()
    config = load_config(os.environ)
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = BudgetApp(config)
    app.run()


if __name__ == "__main__":  # pragma: no cover - script mode
    main()
