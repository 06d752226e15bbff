"""Two-pane Custom Settings picker window."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import customtkinter as ctk
from tkinter import messagebox, ttk

from .commands import ERROR, INFO, WARNING, Outcome, SelectorHost
from .protocol import CloseSession, DisplayRecords, HostError, StatusLine
from .selection_store import Selection
from .exporter import stable_record_key
from .selector_state import BranchState, Phase, SelectorState

logger = logging.getLogger(__name__)

ctk.set_appearance_mode("System")
ctk.set_default_color_theme("blue")

CHECK_GLYPHS = {
    BranchState.CHECKED: "☑",
    BranchState.UNCHECKED: "☐",
    BranchState.PARTIAL: "◪",
}
STATUS_COLORS = {INFO: "#28a745", WARNING: "#FFA500", ERROR: "#CC3333"}
POLL_MS = 100
SEARCH_DEBOUNCE_MS = 300


class CustomSettingsSelectorGUI(ctk.CTk):
    def __init__(self, candidates: List[str], saved: Selection, host: SelectorHost):
        super().__init__()

        self.title("Select Custom Settings")
        self.geometry("1200x768")
        self.minsize(900, 600)

        self.host = host
        self.channel = host.channel
        self.selector = SelectorState(candidates, saved.types, saved.record_keys_by_type)
        self.result: Optional[Outcome] = None
        self.is_saving = False

        self.type_checkboxes: Dict[str, ctk.CTkCheckBox] = {}
        self.tree_items: Dict[str, Tuple[str, Optional[str]]] = {}
        self._search_after_id = None

        self.grid_rowconfigure(1, weight=1)
        self.grid_columnconfigure(0, weight=1)

        self._setup_header()
        self._setup_panes()
        self._setup_status_area()

        self._refresh_types()
        self._refresh_buttons()
        self._process_message_queue()

    # ==================================
    # Layout
    # ==================================

    def _setup_header(self):
        header_frame = ctk.CTkFrame(self, fg_color="transparent")
        header_frame.grid(row=0, column=0, pady=(10, 5), padx=20, sticky="ew")
        ctk.CTkLabel(header_frame, text="Custom Settings", font=ctk.CTkFont(size=24, weight="bold")).grid(row=0, column=0, sticky="w")
        ctk.CTkLabel(
            header_frame,
            text="1) Select Custom Setting types. 2) Click Retrieve to load records. 3) Select records and save/retrieve.",
            font=ctk.CTkFont(size=12),
        ).grid(row=1, column=0, sticky="w")

    def _setup_panes(self):
        split = ctk.CTkFrame(self)
        split.grid(row=1, column=0, padx=20, pady=5, sticky="nsew")
        split.grid_columnconfigure(0, weight=1)
        split.grid_columnconfigure(1, weight=1)
        split.grid_rowconfigure(0, weight=1)

        # LEFT: types
        types_frame = ctk.CTkFrame(split)
        types_frame.grid(row=0, column=0, padx=5, pady=5, sticky="nsew")
        types_frame.grid_columnconfigure(0, weight=1)
        types_frame.grid_rowconfigure(2, weight=1)

        ctk.CTkLabel(types_frame, text="1) Types", font=ctk.CTkFont(size=16, weight="bold")).grid(row=0, column=0, pady=(5, 2))

        self.search_entry = ctk.CTkEntry(types_frame, placeholder_text="Search custom settings...", height=30)
        self.search_entry.grid(row=1, column=0, padx=8, pady=3, sticky="ew")
        self.search_entry.bind("<KeyRelease>", self._debounced_search)

        self.types_list = ctk.CTkScrollableFrame(types_frame)
        self.types_list.grid(row=2, column=0, padx=8, pady=3, sticky="nsew")
        self.types_list.grid_columnconfigure(0, weight=1)
        for type_name in self.selector.sorted_candidates():
            checkbox = ctk.CTkCheckBox(self.types_list, text=type_name,
                                       command=lambda t=type_name: self._on_type_clicked(t))
            self.type_checkboxes[type_name] = checkbox

        self.types_count_label = ctk.CTkLabel(types_frame, text="0 types selected", font=ctk.CTkFont(size=11))
        self.types_count_label.grid(row=3, column=0, pady=(0, 3))

        types_buttons = ctk.CTkFrame(types_frame, fg_color="transparent")
        types_buttons.grid(row=4, column=0, pady=5)
        self.retrieve_button = ctk.CTkButton(types_buttons, text="Retrieve", command=self.retrieve_action, width=100)
        self.retrieve_button.grid(row=0, column=0, padx=3)
        self.select_all_button = ctk.CTkButton(types_buttons, text="Select All", command=self.select_all_action, width=100, fg_color="gray")
        self.select_all_button.grid(row=0, column=1, padx=3)
        self.deselect_all_button = ctk.CTkButton(types_buttons, text="Deselect All", command=self.deselect_all_action, width=100, fg_color="gray")
        self.deselect_all_button.grid(row=0, column=2, padx=3)

        self.types_loading_label = ctk.CTkLabel(types_frame, text="", font=ctk.CTkFont(size=11))
        self.types_loading_label.grid(row=5, column=0, pady=(0, 5))

        # RIGHT: records
        records_frame = ctk.CTkFrame(split)
        records_frame.grid(row=0, column=1, padx=5, pady=5, sticky="nsew")
        records_frame.grid_columnconfigure(0, weight=1)
        records_frame.grid_rowconfigure(4, weight=1)

        ctk.CTkLabel(records_frame, text="2) Records", font=ctk.CTkFont(size=16, weight="bold")).grid(row=0, column=0, pady=(5, 2))
        ctk.CTkLabel(
            records_frame,
            text="Labels show Name when available; hierarchy settings may show SetupOwnerId.",
            font=ctk.CTkFont(size=11),
        ).grid(row=1, column=0)

        self.records_count_label = ctk.CTkLabel(records_frame, text="0 records selected", font=ctk.CTkFont(size=11))
        self.records_count_label.grid(row=2, column=0, pady=(0, 3))

        records_buttons = ctk.CTkFrame(records_frame, fg_color="transparent")
        records_buttons.grid(row=3, column=0, pady=5)
        self.save_and_retrieve_button = ctk.CTkButton(records_buttons, text="Save + Retrieve Selected Records",
                                                      command=self.save_and_retrieve_action, fg_color="green")
        self.save_and_retrieve_button.grid(row=0, column=0, padx=3)
        self.save_types_button = ctk.CTkButton(records_buttons, text="Save Types Only",
                                               command=self.save_types_only_action, fg_color="gray")
        self.save_types_button.grid(row=0, column=1, padx=3)

        tree_frame = ctk.CTkFrame(records_frame)
        tree_frame.grid(row=4, column=0, padx=8, pady=(3, 8), sticky="nsew")
        tree_frame.grid_columnconfigure(0, weight=1)
        tree_frame.grid_rowconfigure(0, weight=1)

        self.records_tree = ttk.Treeview(tree_frame, columns=("id",), selectmode="none")
        self.records_tree.heading("#0", text="Record")
        self.records_tree.heading("id", text="Id")
        self.records_tree.column("id", width=170, stretch=False)
        self.records_tree.grid(row=0, column=0, sticky="nsew")
        scrollbar = ttk.Scrollbar(tree_frame, orient="vertical", command=self.records_tree.yview)
        scrollbar.grid(row=0, column=1, sticky="ns")
        self.records_tree.configure(yscrollcommand=scrollbar.set)
        self.records_tree.bind("<Button-1>", self._on_tree_click)

        self.records_loading_label = ctk.CTkLabel(records_frame, text="Waiting for Retrieve...", font=ctk.CTkFont(size=11))
        self.records_loading_label.grid(row=5, column=0, pady=(0, 5))

    def _setup_status_area(self):
        self.status_bar = ctk.CTkLabel(self, text="Status: Ready", font=ctk.CTkFont(size=12),
                                       fg_color=STATUS_COLORS[INFO], height=30, anchor="w", padx=10)
        self.status_bar.grid(row=2, column=0, sticky="ew", padx=20, pady=(5, 0))

        self.status_textbox = ctk.CTkTextbox(self, height=160, font=("Consolas", 10))
        self.status_textbox.grid(row=3, column=0, padx=20, pady=(5, 10), sticky="nsew")
        self.status_textbox.insert("end", f"  Custom Settings - {len(self.selector.candidate_types)} type(s) available\n")
        self.status_textbox.configure(state="disabled")

    # ==================================
    # Host messages
    # ==================================

    def _process_message_queue(self):
        """Apply everything the host has posted since the last poll."""
        try:
            for message in self.channel.drain_ui():
                if isinstance(message, DisplayRecords):
                    self._handle_display_records(message)
                elif isinstance(message, StatusLine):
                    self.update_status(message.message, message.verbose)
                elif isinstance(message, HostError):
                    self._handle_host_error(message.message)
                elif isinstance(message, CloseSession):
                    self._handle_close_session(message)
                    return
        finally:
            if self.selector.phase != Phase.CLOSED:
                self.after(POLL_MS, self._process_message_queue)

    def _handle_display_records(self, message: DisplayRecords):
        self.selector.display_records(message.records)
        self.types_loading_label.configure(text="")
        self.records_loading_label.configure(text="")
        self.update_status_bar("Records loaded")
        self._render_tree()
        self._refresh_types()
        self._refresh_buttons()

    def _handle_host_error(self, error_msg: str):
        self.is_saving = False
        if self.selector.phase == Phase.LOADING:
            self.selector.fetch_failed()
            self.types_loading_label.configure(text="")
            self.records_loading_label.configure(text="Waiting for Retrieve...")
            self._refresh_types()
        self.update_status(f"❌ {error_msg}")
        self.update_status_bar("Failed!", STATUS_COLORS[ERROR])
        self._refresh_buttons()
        messagebox.showerror("Error", error_msg)

    def _handle_close_session(self, message: CloseSession):
        self.result = Outcome(message.level, message.message)
        self.update_status(message.message)
        self.selector.close()
        self.destroy()

    # ==================================
    # Status helpers
    # ==================================

    def update_status(self, message: str, verbose: bool = False):
        timestamp = datetime.now().strftime("[%H:%M:%S]")
        self.status_textbox.configure(state="normal")
        self.status_textbox.insert("end", f"\n{timestamp} {message}")
        self.status_textbox.see("end")
        self.status_textbox.configure(state="disabled")
        if not verbose:
            logger.info(message)

    def update_status_bar(self, message: str, color: str = STATUS_COLORS[INFO]):
        self.status_bar.configure(text=f"Status: {message}", fg_color=color)

    # ==================================
    # Pane 1: types
    # ==================================

    def _debounced_search(self, event=None):
        if self._search_after_id:
            self.after_cancel(self._search_after_id)
        self._search_after_id = self.after(SEARCH_DEBOUNCE_MS, self.filter_types)

    def filter_types(self):
        self._search_after_id = None
        self.selector.set_filter(self.search_entry.get())
        self._refresh_types()

    def _on_type_clicked(self, type_name: str):
        checked = bool(self.type_checkboxes[type_name].get())
        self.selector.set_type_checked(type_name, checked)
        self._refresh_types()
        self._refresh_buttons()

    def select_all_action(self):
        self.selector.select_all_visible()
        self._refresh_types()
        self._refresh_buttons()

    def deselect_all_action(self):
        self.selector.deselect_all()
        self._refresh_types()
        self._refresh_buttons()

    def _refresh_types(self):
        """Project the type pane from state: visibility, check marks, enabled."""
        visible = set(self.selector.visible_types())
        widget_state = "disabled" if self.selector.types_frozen else "normal"
        row = 0
        for type_name in self.selector.sorted_candidates():
            checkbox = self.type_checkboxes[type_name]
            if self.selector.is_type_checked(type_name):
                checkbox.select()
            else:
                checkbox.deselect()
            checkbox.configure(state=widget_state)
            if type_name in visible:
                checkbox.grid(row=row, column=0, padx=5, pady=2, sticky="w")
                row += 1
            else:
                checkbox.grid_remove()
        self.types_count_label.configure(text=self.selector.types_selection_label())

    # ==================================
    # Pane 2: record tree
    # ==================================

    def _render_tree(self):
        self.records_tree.delete(*self.records_tree.get_children(""))
        self.tree_items.clear()

        branch_types = self.selector.branch_types()
        if not branch_types:
            self.records_loading_label.configure(text="No records returned for selected types.")
            return

        for type_name in branch_types:
            keys = self.selector.record_keys(type_name)
            branch_iid = self.records_tree.insert("", "end", open=True, values=("",),
                                                  text=self._branch_text(type_name, len(keys)))
            self.tree_items[branch_iid] = (type_name, None)
            ids_by_key = self._ids_by_key(type_name)
            for key in keys:
                leaf_iid = self.records_tree.insert(branch_iid, "end", text=self._leaf_text(type_name, key),
                                                    values=(ids_by_key.get(key, ""),))
                self.tree_items[leaf_iid] = (type_name, key)

    def _ids_by_key(self, type_name: str) -> Dict[str, str]:
        ids: Dict[str, str] = {}
        for rec in self.selector.loaded_records.get(type_name, []):
            ids.setdefault(stable_record_key(rec), rec.get('Id') or "")
        return ids

    def _branch_text(self, type_name: str, count: int) -> str:
        return f"{CHECK_GLYPHS[self.selector.branch_state(type_name)]} {type_name} ({count})"

    def _leaf_text(self, type_name: str, key: str) -> str:
        glyph = CHECK_GLYPHS[BranchState.CHECKED if self.selector.is_record_checked(type_name, key) else BranchState.UNCHECKED]
        return f"{glyph} {key}"

    def _refresh_tree_marks(self):
        for iid, (type_name, key) in self.tree_items.items():
            if key is None:
                text = self._branch_text(type_name, len(self.selector.record_keys(type_name)))
            else:
                text = self._leaf_text(type_name, key)
            self.records_tree.item(iid, text=text)
        self.records_count_label.configure(text=self.selector.records_selection_label())

    def _on_tree_click(self, event):
        if self.is_saving:
            return
        if self.records_tree.identify_element(event.x, event.y) in ("Treeitem.indicator", "indicator"):
            return  # expand/collapse arrow
        iid = self.records_tree.identify_row(event.y)
        if not iid or iid not in self.tree_items:
            return
        type_name, key = self.tree_items[iid]
        if key is None:
            self.selector.toggle_branch(type_name, self.selector.branch_state(type_name) != BranchState.CHECKED)
        else:
            self.selector.toggle_record(type_name, key)
        self._refresh_tree_marks()
        self._refresh_buttons()

    # ==================================
    # Actions
    # ==================================

    def _refresh_buttons(self):
        busy = self.is_saving or self.selector.phase == Phase.LOADING
        self.retrieve_button.configure(state="disabled" if busy or not self.selector.checked_type_count else "normal")
        for button in (self.select_all_button, self.deselect_all_button):
            button.configure(state="disabled" if busy else "normal")
        self.save_types_button.configure(state="normal" if not busy and self.selector.can_save_types() else "disabled")
        self.save_and_retrieve_button.configure(
            state="normal" if not busy and self.selector.can_save_and_retrieve() else "disabled")
        self.records_count_label.configure(text=self.selector.records_selection_label())
        self.configure(cursor="watch" if busy else "")

    def retrieve_action(self):
        request = self.selector.request_records()
        if request is None:
            return
        self.records_tree.delete(*self.records_tree.get_children(""))
        self.tree_items.clear()
        self.types_loading_label.configure(text="Loading records for selected types...")
        self.records_loading_label.configure(text="Loading...")
        self.update_status_bar(f"Fetching records for {len(request.types)} type(s)...", STATUS_COLORS[WARNING])
        self._refresh_types()
        self._refresh_buttons()
        self.channel.post_to_host(request)

    def save_and_retrieve_action(self):
        request = self.selector.save_and_retrieve()
        if request is None:
            return
        self._start_saving("Saving selection and retrieving records...")
        self.channel.post_to_host(request)

    def save_types_only_action(self):
        request = self.selector.save_types_only()
        if request is None:
            return
        self._start_saving("Saving selection...")
        self.channel.post_to_host(request)

    def _start_saving(self, message: str):
        self.is_saving = True
        self.update_status(message)
        self.update_status_bar(message, STATUS_COLORS[WARNING])
        self._refresh_buttons()

    def on_closing(self):
        """
        Window closed: the session is discarded without writing anything.
        A save that already started is not cancelled; the command waits for it.
        """
        if self.is_saving:
            confirm = messagebox.askyesno(
                "Save In Progress",
                "The selection is being saved and its data retrieved.\n"
                "Closing the window will not stop it; the command finishes once the export is done.\n"
                "Close the window anyway?",
            )
            if not confirm:
                return
        self.selector.close()
        self.host.stop()
        self.destroy()


# ===========================================
# ENTRY POINT USED BY THE SHOW COMMAND
# ===========================================

def run_selector(candidates: List[str], saved: Selection, host: SelectorHost) -> Optional[Outcome]:
    """Open the picker and block until it closes; returns the host's outcome, if any."""
    host.exporter.status_callback = lambda message, verbose=False: host.channel.post_to_ui(StatusLine(message, verbose))
    host.start()
    app = CustomSettingsSelectorGUI(candidates, saved, host)
    app.protocol("WM_DELETE_WINDOW", app.on_closing)
    app.mainloop()
    return app.result
