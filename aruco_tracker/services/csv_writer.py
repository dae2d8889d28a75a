import csv
import io
import time

import numpy as np


def _vec3(vec):
    if vec is None:
        return [float("nan")] * 3
    a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
    if len(a) < 3:
        a += [float("nan")] * (3 - len(a))
    return a[:3]


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "timestamp_ns", "marker_id",
        "marker_size_m", "provisional",
        "rvec_x", "rvec_y", "rvec_z",
        "tvec_x", "tvec_y", "tvec_z",
        "reproj_rmse_px",
        "image_path",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @classmethod
    def row(cls, frame, estimate, img_path, ts_unix=None) -> list:
        pose = estimate.pose
        rvec = pose.rvec if pose is not None else None
        tvec = pose.tvec if pose is not None else None
        rmse = pose.reproj_rmse_px if pose is not None else float("nan")
        ts_unix = time.time() if ts_unix is None else ts_unix
        return [
            f"{ts_unix:.6f}",
            frame.idx, frame.timestamp_ns, estimate.marker_id,
            f"{estimate.size_m:.6f}", int(estimate.provisional),
            *_vec3(rvec), *_vec3(tvec),
            rmse,
            img_path or "",
        ]

    def append(self, frame, estimate, img_path, ts_unix=None):
        self._w.writerow(self.row(frame, estimate, img_path, ts_unix))

    @classmethod
    def to_csv_line(cls, frame, estimate, img_path, ts_unix=None) -> str:
        buf = io.StringIO()
        csv.writer(buf).writerow(cls.row(frame, estimate, img_path, ts_unix))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
