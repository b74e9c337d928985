"""Expression-Built Reprojection Factors vs Hand-Derived Jacobians.

This example builds the standard bundle-adjustment reprojection factor in
two ways and checks that they agree:
    1. Generate a synthetic scene (cameras in a row, points in front of them)
    2. Simulate noisy pixel observations
    3. Perturb the ground truth to get a linearization point
    4. For every observation build
         - ExpressionFactor(uncalibrate(K, project(transform_to(x, p))))
         - ReprojectionFactor with hand-derived Jacobians
    5. Compare errors and linearized Jacobian factors
    6. Verify the expression Jacobians against finite differences

Usage:
    python -m examples.example_expression_factor
    python -m examples.example_expression_factor --num-cameras 5 --sigma 0.5
"""

import argparse
import json
from typing import Dict, List, Tuple

import numpy as np

from blockad.expressions import Leaf, project, transform_to, uncalibrate
from blockad.geometry import Cal3_S2, Point2, Point3, Pose3, project_point
from blockad.keys import symbol
from blockad.nonlinear import ExpressionFactor, Isotropic, Values
from blockad.slam import ReprojectionFactor
from blockad.utils import DerivativeCheckConfig, check_expression_jacobians


def generate_scene(
    n_cameras: int,
    n_points: int,
    rng: np.random.Generator,
) -> Tuple[List[Pose3], List[Point3]]:
    """
    Cameras on a line at z = -5 looking along +z, points near the origin.

    Args:
        n_cameras: Number of camera poses.
        n_points: Number of landmarks.
        rng: Random generator.

    Returns:
        Tuple (poses, points).
    """
    poses = []
    for i in range(n_cameras):
        x = (i - 0.5 * (n_cameras - 1)) * 0.5
        roll, pitch, yaw = rng.normal(scale=0.05, size=3)
        poses.append(Pose3.from_euler(roll, pitch, yaw, t=np.array([x, 0.0, -5.0])))

    points = [
        Point3(*rng.uniform([-1.0, -1.0, -0.5], [1.0, 1.0, 0.5]))
        for _ in range(n_points)
    ]
    return poses, points


def simulate_observations(
    poses: List[Pose3],
    points: List[Point3],
    calibration: Cal3_S2,
    sigma: float,
    rng: np.random.Generator,
) -> Dict[Tuple[int, int], Point2]:
    """Project every point into every camera and add pixel noise."""
    observations = {}
    for i, pose in enumerate(poses):
        for j, point in enumerate(points):
            uv = project_point(pose, point, calibration)
            observations[(i, j)] = uv.retract(rng.normal(scale=sigma, size=2))
    return observations


def perturb(
    poses: List[Pose3],
    points: List[Point3],
    calibration: Cal3_S2,
    rng: np.random.Generator,
) -> Values:
    """Linearization point: ground truth plus small tangent-space noise."""
    values = Values()
    for i, pose in enumerate(poses):
        delta = np.concatenate([rng.normal(scale=0.01, size=3), rng.normal(scale=0.05, size=3)])
        values.insert(symbol("x", i), pose.retract(delta))
    for j, point in enumerate(points):
        values.insert(symbol("l", j), point.retract(rng.normal(scale=0.05, size=3)))
    values.insert(symbol("K", 0), calibration.retract(rng.normal(scale=1.0, size=5)))
    return values


def main():
    """Run the expression factor comparison."""
    parser = argparse.ArgumentParser(
        description="Expression-built vs hand-derived reprojection factors",
    )
    parser.add_argument("--num-cameras", type=int, default=4, help="Number of camera poses")
    parser.add_argument("--num-points", type=int, default=12, help="Number of landmarks")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--sigma", type=float, default=1.0, help="Pixel noise standard deviation")
    args = parser.parse_args()

    if args.num_cameras < 1 or args.num_points < 1:
        parser.error("--num-cameras and --num-points must be positive")
    if args.sigma <= 0.0:
        parser.error("--sigma must be positive")

    print("=" * 70)
    print("EXPRESSION FACTOR vs HAND-DERIVED REPROJECTION FACTOR")
    print("=" * 70)
    print()

    rng = np.random.default_rng(args.seed)
    calibration = Cal3_S2(fx=500.0, fy=500.0, s=0.0, u0=320.0, v0=240.0)

    print("1. Generating scene...")
    poses, points = generate_scene(args.num_cameras, args.num_points, rng)
    print(f"   {len(poses)} cameras, {len(points)} points")
    for i, pose in enumerate(poses):
        roll, pitch, yaw = np.degrees(pose.to_euler())
        print(f"   camera {i}: t = {np.round(pose.t, 2)}, "
              f"rpy = ({roll:.2f}, {pitch:.2f}, {yaw:.2f}) deg")

    print("\n2. Simulating observations...")
    observations = simulate_observations(poses, points, calibration, args.sigma, rng)
    print(f"   {len(observations)} observations, sigma = {args.sigma} px")

    print("\n3. Perturbing ground truth...")
    values = perturb(poses, points, calibration, rng)
    print(f"   {len(values)} variables")

    print("\n4. Building and linearizing factors...")
    noise = Isotropic.from_sigma(2, args.sigma)
    # Pixel-scale Jacobians need looser tolerances than the defaults
    check_config = DerivativeCheckConfig(delta=1e-5, rtol=1e-5, atol=1e-6)
    K = Leaf(Cal3_S2, symbol("K", 0))

    max_error_diff = 0.0
    max_block_diff = 0.0
    all_equal = True
    derivatives_ok = True
    total_error = 0.0
    for (i, j), measured in observations.items():
        x = Leaf(Pose3, symbol("x", i))
        p = Leaf(Point3, symbol("l", j))
        prediction = uncalibrate(K, project(transform_to(x, p)))

        expression_factor = ExpressionFactor(measured, prediction, noise)
        reference_factor = ReprojectionFactor(measured, noise, x.key, p.key, K.key)

        error = expression_factor.error(values)
        total_error += error
        max_error_diff = max(max_error_diff, abs(error - reference_factor.error(values)))

        linear = expression_factor.linearize(values)
        reference = reference_factor.linearize(values)
        all_equal = all_equal and linear.equals(reference, tol=1e-9)
        for key in reference.keys():
            diff = np.max(np.abs(linear.get_a(key) - reference.get_a(key)))
            max_block_diff = max(max_block_diff, float(diff))

        derivatives_ok = derivatives_ok and check_expression_jacobians(prediction, values, check_config)

    print(f"   Total error: {total_error:.4f}")
    print(f"   Max |error difference|: {max_error_diff:.3e}")
    print(f"   Max |block difference|: {max_block_diff:.3e}")
    print(f"   Linearized factors identical: {all_equal}")
    print(f"   Finite-difference check passed: {derivatives_ok}")

    summary = {
        "n_cameras": len(poses),
        "n_points": len(points),
        "n_factors": len(observations),
        "total_error": total_error,
        "max_error_diff": max_error_diff,
        "max_block_diff": max_block_diff,
        "factors_equal": bool(all_equal),
        "derivative_check": bool(derivatives_ok),
    }
    print()
    print(f"[BAD_SUMMARY] {json.dumps(summary)}")
    print()
    print("=" * 70)
    print("EXPRESSION FACTOR COMPARISON COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    main()
