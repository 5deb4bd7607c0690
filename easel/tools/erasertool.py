from easel.tools.painttool import PaintTool


class EraserTool(PaintTool):
    name = "Eraser"
    icon = "icons/tooleraser.png"
    shortcut = "E"

    erase = True
    verb = "erase on"
    label = "Erase"

    def brush_size(self) -> float:
        return self.editor.project.settings.erase_brush_size
