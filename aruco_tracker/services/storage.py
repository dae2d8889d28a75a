import json
from pathlib import Path
from time import strftime

import cv2


class SessionStorage:
    def __init__(self, root: str, name: str = "session"):
        self.root = Path(root)
        self.name = name
        self.session_dir = None
        self.frames_dir = None
        self.annotated_dir = None
        self.logs_dir = None
        self.last_path = None
        self.last_annotated_path = None

    def begin(self) -> str:
        sid = f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        self.session_dir = self.root / sid
        self.frames_dir = self.session_dir / "frames"
        self.annotated_dir = self.session_dir / "annotated"
        self.logs_dir = self.session_dir / "logs"
        for d in (self.frames_dir, self.annotated_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    def save_frame(self, f) -> str:
        """Save the converted input frame (no drawings)."""
        p = self.frames_dir / f"f{f.idx:06d}.jpg"
        cv2.imwrite(str(p), f.image)
        self.last_path = str(p)
        return self.last_path

    def save_annotated(self, f) -> str:
        """Save the annotated output frame; one per input frame."""
        p = self.annotated_dir / f"f{f.idx:06d}_aruco.jpg"
        cv2.imwrite(str(p), f.image)
        self.last_annotated_path = str(p)
        return self.last_annotated_path

    def write_manifest(self, meta: dict):
        with open(self.session_dir / "config.json", "w") as fp:
            json.dump(meta, fp, indent=2, default=str)
