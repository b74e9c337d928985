"""Hand-derived reprojection factor for bundle adjustment.

ReprojectionFactor predicts the pixel at which a camera (pose + calibration)
observes a world point and writes the full chain rule out by hand:

    q   = Rᵀ (p - t)             H_q_pose = [[q]ₓ, -I],  H_q_point = Rᵀ
    p_n = (q_x/q_z, q_y/q_z)     H_n_q    = project_jacobian(q)
    uv  = K p_n                  H_uv_K, H_uv_n = K.uncalibrate_jacobians(p_n)

The error is uv - measured. The same factor built from an expression,

    uncalibrate(K, project(transform_to(x, p)))

must linearize to an identical JacobianFactor; this class is the reference
that expression-built factors are tested against.
"""

from typing import Dict, Tuple

import numpy as np

from ..geometry.camera import project_jacobian, project_to_normalized
from ..geometry.types import Cal3_S2, Point2, Point3, Pose3
from ..keys import Key
from ..nonlinear.factors import NoiseModelFactor
from ..nonlinear.noise_model import Gaussian
from ..nonlinear.values import Values


class ReprojectionFactor(NoiseModelFactor):
    """
    Pixel reprojection error of one point in one camera.

    Attributes:
        measured: Observed pixel coordinates.
        pose_key: Key of the camera Pose3.
        point_key: Key of the world Point3.
        calibration_key: Key of the Cal3_S2 calibration.
    """

    def __init__(
        self,
        measured: Point2,
        noise_model: Gaussian,
        pose_key: Key,
        point_key: Key,
        calibration_key: Key,
    ):
        if not isinstance(measured, Point2):
            raise TypeError(f"measured must be a Point2, got {type(measured).__name__}")
        super().__init__(noise_model, [pose_key, point_key, calibration_key], Point2.dim)
        self.measured = measured
        self.pose_key = pose_key
        self.point_key = point_key
        self.calibration_key = calibration_key

    def _variables(self, values: Values) -> Tuple[Pose3, Point3, Cal3_S2]:
        return (
            values.at(self.pose_key, Pose3),
            values.at(self.point_key, Point3),
            values.at(self.calibration_key, Cal3_S2),
        )

    def unwhitened_error(self, values: Values) -> np.ndarray:
        pose, point, calibration = self._variables(values)
        uv = calibration.uncalibrate(project_to_normalized(pose.transform_to(point)))
        return self.measured.local_coordinates(uv)

    def unwhitened_error_and_jacobians(
        self, values: Values
    ) -> Tuple[np.ndarray, Dict[Key, np.ndarray]]:
        pose, point, calibration = self._variables(values)

        q = pose.transform_to(point)
        H_q_pose, H_q_point = pose.transform_to_jacobians(point)

        p_n = project_to_normalized(q)
        H_n_q = project_jacobian(q)

        uv = calibration.uncalibrate(p_n)
        H_uv_K, H_uv_n = calibration.uncalibrate_jacobians(p_n)

        H_uv_q = H_uv_n @ H_n_q
        jacobians = {
            self.pose_key: H_uv_q @ H_q_pose,
            self.point_key: H_uv_q @ H_q_point,
            self.calibration_key: H_uv_K,
        }
        return self.measured.local_coordinates(uv), jacobians
