"""
Benchmark script for brand logit estimation

Tests speed and accuracy across panel sizes, brand intercepts and optimization methods.
"""

import time

import numpy as np

from panelmnl import BrandLogit, loglik_gradient, simulate_panel


def benchmark_estimation(N, T, K, B=None, method="BFGS", seed=42):
    """
    Benchmark a single estimation run.

    Returns:
        dict: Contains timing, accuracy, and convergence information
    """
    t0 = time.time()
    layout, true_beta, true_gamma_raw = simulate_panel(N, T, K, B=B, seed=seed)
    sim_time = time.time() - t0

    brand_intercepts = B is not None
    model = BrandLogit(layout, brand_intercepts=brand_intercepts)
    init_params = np.zeros(model.n_params)
    init_beta, init_gamma_raw = model.transform_params(init_params)

    # Time likelihood evaluation
    t0 = time.time()
    _ = model.log_likelihood(init_params)
    likelihood_time = time.time() - t0

    # Time gradient evaluation
    t0 = time.time()
    _ = loglik_gradient(init_beta, layout, init_gamma_raw)
    gradient_time = time.time() - t0

    t0 = time.time()
    model.fit(init_params=init_params, method=method)
    opt_time = time.time() - t0
    result = model.optimization_result_

    truth = true_beta if not brand_intercepts else np.concatenate([true_beta, true_gamma_raw])
    errors = result.x - truth
    mae = np.mean(np.abs(errors))
    rmse = np.sqrt(np.mean(errors**2))
    max_error = np.max(np.abs(errors))

    t0 = time.time()
    # Runtime tracked, values unused in benchmark output
    _ = model.compute_standard_errors()
    se_time = time.time() - t0

    return {
        "N": N,
        "T": T,
        "K": K,
        "B": B,
        "method": method,
        "sim_time": sim_time,
        "likelihood_time": likelihood_time,
        "gradient_time": gradient_time,
        "opt_time": opt_time,
        "se_time": se_time,
        "total_time": sim_time + opt_time + se_time,
        "success": result.success,
        "nit": result.nit,
        "nfev": result.nfev,
        "final_nll": result.fun,
        "mae": mae,
        "rmse": rmse,
        "max_error": max_error,
    }


def print_results(results):
    """Pretty print benchmark results."""
    print("\n" + "=" * 100)
    print(
        f"{'N':<7} {'T':<5} {'K':<4} {'B':<4} {'Method':<10} {'Opt(s)':<8} {'SE(s)':<8} "
        f"{'Iters':<6} {'FEval':<6} {'MAE':<8} {'RMSE':<8} {'MaxErr':<8} {'Success':<7}"
    )
    print("=" * 100)

    for r in results:
        print(
            f"{r['N']:<7} {r['T']:<5} {r['K']:<4} {str(r['B'] or '-'):<4} {r['method']:<10} "
            f"{r['opt_time']:<8.3f} {r['se_time']:<8.3f} "
            f"{r['nit']:<6} {r['nfev']:<6} "
            f"{r['mae']:<8.4f} {r['rmse']:<8.4f} {r['max_error']:<8.4f} "
            f"{'✓' if r['success'] else '✗':<7}"
        )
    print("=" * 100)


def main():
    print("Brand Logit Estimation Benchmark")
    print("=" * 100)

    problem_sizes = [
        (1000, 26, 2, None),
        (5000, 52, 3, None),
        (5000, 52, 3, 5),
        (20000, 104, 4, 10),
    ]
    methods = ["BFGS", "L-BFGS-B", "Newton-CG"]

    results = []

    print("\n1. Problem Size Scaling (BFGS)")
    print("-" * 100)
    for N, T, K, B in problem_sizes:
        print(f"Running: N={N}, T={T}, K={K}, B={B}...", end=" ", flush=True)
        r = benchmark_estimation(N, T, K, B=B, method="BFGS")
        results.append(r)
        print(f"✓ ({r['opt_time']:.2f}s)")

    print("\n2. Optimization Method Comparison (N=5000, T=52, K=3, B=5)")
    print("-" * 100)
    for method in methods:
        print(f"Running: {method}...", end=" ", flush=True)
        try:
            r = benchmark_estimation(5000, 52, 3, B=5, method=method)
            results.append(r)
            print(f"✓ ({r['opt_time']:.2f}s)")
        except RuntimeError as e:
            print(f"✗ Failed: {e}")

    print_results(results)


if __name__ == "__main__":
    main()
