from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from easel.core.command import Command, CommandExecutor


class UndoManager(QObject):
    """Undo and redo stacks of executed commands.

    Pushing a new command clears the redo stack; history never branches.
    Commands must not be pushed while another one is being applied.
    """

    history_changed = Signal()

    def __init__(self, executor: CommandExecutor, parent: QObject | None = None):
        super().__init__(parent)
        self.executor = executor
        self.undo_stack: list[Command] = []
        self.redo_stack: list[Command] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()
        self.history_changed.emit()

    def push_command(self, command: Command):
        """
        Executes ``command`` and records it on the undo stack.
        """
        self.executor.do(command)
        self.undo_stack.append(command)
        self.redo_stack.clear()
        self.history_changed.emit()

    def undo(self):
        """
        Undoes the last command.
        """
        if not self.undo_stack:
            return
        command = self.undo_stack.pop()
        self.executor.undo(command)
        self.redo_stack.append(command)
        self.history_changed.emit()

    def redo(self):
        """
        Redoes the last undone command.
        """
        if not self.redo_stack:
            return
        command = self.redo_stack.pop()
        self.executor.do(command)
        self.undo_stack.append(command)
        self.history_changed.emit()
