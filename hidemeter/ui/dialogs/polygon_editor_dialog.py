"""Interactive dialog for manual tracing and vertex adjustment."""

import logging
import tkinter as tk
from tkinter import messagebox, ttk
from typing import Optional

import numpy as np

from ...services.editor import EditorMode, EditorStep, VertexEditor
from ..components.editor_canvas import EditorCanvas

logger = logging.getLogger(__name__)

STEP_INSTRUCTIONS = {
    EditorStep.CAPTURING_REFERENCE: "Step 1/2: click the 4 corners of the A4 sheet",
    EditorStep.CAPTURING_TARGET: "Step 2/2: click around the hide outline (3+ points)",
    EditorStep.DONE: "Drag vertices to adjust, then Save",
}


class PolygonEditorDialog:
    """Modal editor around an EditorCanvas.

    The dialog never finalizes the session itself: ``show()`` returns True
    when the operator pressed Save with the editor in DONE, and the caller
    then stores the result. Cancel closes the session.
    """

    def __init__(self, parent, editor: VertexEditor, image: Optional[np.ndarray] = None,
                 title: str = "Hide Area Editor"):
        """Initialize polygon editor dialog.

        Args:
            parent: Parent window
            editor: Open editing session
            image: Prepared BGR image to trace on
            title: Window title
        """
        self.editor = editor
        self.saved = False

        self.dialog = tk.Toplevel(parent)
        self.dialog.title(title)
        self.dialog.geometry("1200x820")
        self.dialog.transient(parent)

        self._build_ui(image)
        self._bind_keyboard_shortcuts()
        self._refresh_controls()

        self.dialog.protocol("WM_DELETE_WINDOW", self._on_cancel)
        self.dialog.grab_set()

    def _build_ui(self, image: Optional[np.ndarray]):
        main_frame = ttk.Frame(self.dialog, padding=10)
        main_frame.pack(fill='both', expand=True)

        self.instruction_var = tk.StringVar()
        ttk.Label(main_frame, textvariable=self.instruction_var,
                  font=('Segoe UI', 11, 'bold')).pack(anchor='w', pady=(0, 6))

        canvas = tk.Canvas(main_frame, bg='#1f1f1f', highlightthickness=0)
        canvas.pack(fill='both', expand=True)
        self.editor_canvas = EditorCanvas(canvas, self.editor, image, on_change=self._refresh_controls)

        status_frame = ttk.Frame(main_frame)
        status_frame.pack(fill='x', pady=6)
        self.status_var = tk.StringVar()
        ttk.Label(status_frame, textvariable=self.status_var, font=('Segoe UI', 9)).pack(side='left')
        self.area_var = tk.StringVar()
        ttk.Label(status_frame, textvariable=self.area_var,
                  font=('Segoe UI', 12, 'bold')).pack(side='right')

        button_frame = ttk.Frame(main_frame)
        button_frame.pack(fill='x')

        self.undo_btn = ttk.Button(button_frame, text="Undo", command=self._on_undo)
        self.undo_btn.pack(side='left', padx=2)
        self.next_btn = ttk.Button(button_frame, text="Next", command=self._on_advance)
        self.next_btn.pack(side='left', padx=2)

        ttk.Separator(button_frame, orient='vertical').pack(side='left', fill='y', padx=8)
        ttk.Button(button_frame, text="Zoom +", command=self._on_zoom_in).pack(side='left', padx=2)
        ttk.Button(button_frame, text="Zoom -", command=self._on_zoom_out).pack(side='left', padx=2)
        self.pan_btn = ttk.Button(button_frame, text="Pan", command=self._on_toggle_pan)
        self.pan_btn.pack(side='left', padx=2)
        ttk.Button(button_frame, text="Reset View", command=self._on_reset_view).pack(side='left', padx=2)

        ttk.Button(button_frame, text="Cancel", command=self._on_cancel).pack(side='right', padx=2)
        self.save_btn = ttk.Button(button_frame, text="Save", command=self._on_save)
        self.save_btn.pack(side='right', padx=2)

    def _refresh_controls(self):
        editor = self.editor
        if editor.is_closed:
            return

        self.instruction_var.set(STEP_INSTRUCTIONS[editor.step])
        self.status_var.set(
            f"Reference: {len(editor.reference)}/4   Hide points: {len(editor.target)}   "
            f"Zoom: {editor.view.zoom:g}x{'   [PAN]' if editor.view.pan_mode else ''}"
        )
        self.area_var.set(f"{editor.current_area:.4f} m²")

        can_undo = (
            (editor.step is EditorStep.CAPTURING_REFERENCE and len(editor.reference) > 0)
            or (editor.step is EditorStep.CAPTURING_TARGET and len(editor.target) > 0)
        )
        self.undo_btn.configure(state='normal' if can_undo else 'disabled')
        self.next_btn.configure(
            state='normal' if editor.can_advance else 'disabled',
            text="Finish" if editor.step is EditorStep.CAPTURING_TARGET else "Next",
        )
        self.save_btn.configure(state='normal' if editor.can_save else 'disabled')

    def _redraw(self):
        self.editor_canvas.render()
        self._refresh_controls()

    def _on_undo(self):
        if self.editor.undo():
            self._redraw()

    def _on_advance(self):
        if self.editor.advance():
            self._redraw()

    def _on_zoom_in(self):
        self.editor.view.zoom_in()
        self._redraw()

    def _on_zoom_out(self):
        self.editor.view.zoom_out()
        self._redraw()

    def _on_toggle_pan(self):
        self.editor.view.toggle_pan_mode()
        self.dialog.configure(cursor='fleur' if self.editor.view.pan_mode else '')
        self._redraw()

    def _on_reset_view(self):
        self.editor.view.reset()
        self._redraw()

    def _on_save(self):
        if not self.editor.can_save:
            return
        self.saved = True
        logger.info(f"Editor confirmed with {len(self.editor.target)} vertices")
        self.dialog.destroy()

    def _on_cancel(self):
        has_changes = (
            self.editor.mode is EditorMode.MANUAL and (len(self.editor.reference) or len(self.editor.target))
        ) or (
            self.editor.mode is EditorMode.EDIT and self.editor.target != self.editor.session.baseline.target
        )
        if has_changes:
            if not messagebox.askyesno("Discard Changes", "Discard the current trace?",
                                       icon='warning', parent=self.dialog):
                return

        if not self.editor.is_closed:
            self.editor.cancel()
        self.saved = False
        logger.info("Editor dialog cancelled")
        self.dialog.destroy()

    def _bind_keyboard_shortcuts(self):
        self.dialog.bind('<Control-z>', lambda e: self._on_undo())
        self.dialog.bind('<Return>', lambda e: self._on_advance() if self.editor.can_advance else self._on_save())
        self.dialog.bind('<Escape>', lambda e: self._on_cancel())
        self.dialog.bind('<plus>', lambda e: self._on_zoom_in())
        self.dialog.bind('<minus>', lambda e: self._on_zoom_out())
        self.dialog.bind('<space>', lambda e: self._on_toggle_pan())

    def show(self) -> bool:
        """Show dialog modally; True when the operator chose Save."""
        self.dialog.after_idle(self.editor_canvas.render)
        self.dialog.wait_window()
        return self.saved
