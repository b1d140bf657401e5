#!/usr/bin/env python3
"""
Build an HTML report from the carve benchmark CSV and the plots produced by
results/analyze_results.py.
"""

import os
import pandas as pd
import datetime
import platform
import subprocess

REPORT_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; margin: 0; padding: 20px; color: #333; }
        h1, h2, h3 { color: #2c3e50; }
        .container { max-width: 1200px; margin: 0 auto; }
        table { border-collapse: collapse; width: 100%; margin-bottom: 20px; }
        th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
        th { background-color: #f2f2f2; }
        tr:nth-child(even) { background-color: #f9f9f9; }
        .plot-container { margin: 20px 0; text-align: center; }
        .plot-container img { max-width: 100%; height: auto; box-shadow: 0 4px 8px rgba(0,0,0,0.1); }
        .section { margin: 40px 0; border-top: 1px solid #eee; padding-top: 20px; }
        .highlight { background-color: #ffffcc; }
"""

def get_system_info():
    """Collect basic system information for the report."""
    info = {
        "OS": platform.system(),
        "OS Version": platform.release(),
        "Architecture": platform.machine(),
        "Python Version": platform.python_version(),
        "Date": datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }

    try:
        if platform.system() == "Darwin":
            info["CPU"] = subprocess.check_output(["sysctl", "-n", "machdep.cpu.brand_string"]).decode().strip()
        elif platform.system() == "Linux":
            with open("/proc/cpuinfo") as f:
                for line in f:
                    if "model name" in line:
                        info["CPU"] = line.split(":", 1)[1].strip()
                        break
    except (OSError, subprocess.CalledProcessError):
        info["CPU"] = "Unknown"

    return info

def load_results(benchmark_csv):
    df = pd.read_csv(benchmark_csv)
    for column in ("avg_time", "min_time", "max_time", "stdev"):
        df[column] = pd.to_numeric(df[column], errors="coerce")
    df = df.dropna(subset=["avg_time"]).copy()
    timed = df["avg_time"] > 0
    df.loc[timed, "throughput_MBps"] = (df.loc[timed, "slice_size"] / (1024 * 1024)) / df.loc[timed, "avg_time"]
    return df

def write_fastest_table(f, df_clean):
    by_block = df_clean.groupby(["block_size", "scenario"]).agg({
        "avg_time": "mean",
        "throughput_MBps": "mean",
    }).reset_index()
    fastest = by_block.loc[by_block.groupby("scenario")["avg_time"].idxmin()]

    f.write("""
            <h3>Fastest Block Size per Scenario</h3>
            <table>
                <tr><th>Scenario</th><th>Block Size (bytes)</th><th>Avg. Time (s)</th><th>Throughput (MB/s)</th></tr>
""")
    for _, row in fastest.iterrows():
        f.write(f"                <tr><td>{row['scenario']}</td><td><strong>{int(row['block_size'])}</strong></td>"
                f"<td>{row['avg_time']:.6f}</td><td>{row['throughput_MBps']:.2f}</td></tr>\n")
    f.write("            </table>\n")

def write_scenario_tables(f, df_clean):
    for scenario, scenario_data in df_clean.groupby("scenario"):
        pivot = scenario_data.pivot_table(index="file_size_MB", columns="block_size", values="avg_time", aggfunc="mean")

        f.write(f"""
            <h3>Scenario: {scenario}</h3>
            <table>
                <tr><th>File Size (MB)</th>""")
        for block_size in pivot.columns:
            f.write(f"<th>{block_size} B (s)</th>")
        f.write("</tr>\n")

        for file_size in pivot.index:
            times = pivot.loc[file_size]
            fastest = times.idxmin()
            f.write(f"                <tr><td>{file_size}</td>")
            for block_size in pivot.columns:
                time_val = times[block_size]
                if block_size == fastest:
                    f.write(f"<td class='highlight'><strong>{time_val:.6f}</strong></td>")
                else:
                    f.write(f"<td>{time_val:.6f}</td>")
            f.write("</tr>\n")
        f.write("            </table>\n")

def generate_html_report():
    """Generate an HTML report with embedded images and data tables."""
    results_dir = "results"
    plots_dir = os.path.join(results_dir, "plots")
    benchmark_csv = os.path.join(results_dir, "benchmark_results.csv")
    output_report = os.path.join(results_dir, "benchmark_report.html")

    if not os.path.exists(benchmark_csv):
        print(f"Error: Benchmark results not found at {benchmark_csv}")
        return False

    try:
        df_clean = load_results(benchmark_csv)
    except (OSError, KeyError, pd.errors.ParserError) as e:
        print(f"Error loading benchmark data: {e}")
        return False

    if os.path.isdir(plots_dir):
        plot_files = sorted(f for f in os.listdir(plots_dir) if f.endswith(".png"))
    else:
        plot_files = []

    system_info = get_system_info()

    with open(output_report, "w") as f:
        f.write(f"""<!DOCTYPE html>
<html>
<head>
    <title>Carve Benchmark Report</title>
    <style>{REPORT_STYLE}    </style>
</head>
<body>
    <div class="container">
        <h1>Carve Benchmark Report</h1>
        <p>Generated on {system_info["Date"]}</p>

        <div class="section">
            <h2>System Information</h2>
            <table>
                <tr><th>Property</th><th>Value</th></tr>
""")
        for key, value in system_info.items():
            f.write(f"                <tr><td>{key}</td><td>{value}</td></tr>\n")

        f.write("""            </table>
        </div>

        <div class="section">
            <h2>Executive Summary</h2>
            <p>Time taken by carve to copy a byte range for each transfer block size.</p>
""")
        if not df_clean.empty:
            write_fastest_table(f, df_clean)

        f.write("""        </div>

        <div class="section">
            <h2>Benchmark Visualizations</h2>
""")
        for plot_file in plot_files:
            plot_title = " ".join(plot_file.replace(".png", "").replace("_", " ").title().split())
            f.write(f"""
            <div class="plot-container">
                <h3>{plot_title}</h3>
                <img src="plots/{plot_file}" alt="{plot_title}">
            </div>
""")

        f.write("""        </div>

        <div class="section">
            <h2>Block Size Comparison</h2>
""")
        if not df_clean.empty:
            write_scenario_tables(f, df_clean)

        f.write("""        </div>

        <div class="section">
            <h2>Raw Benchmark Data</h2>
""")
        # cap the raw table, the CSV has everything
        max_rows = min(20, len(df_clean))
        f.write(df_clean.head(max_rows).to_html(index=False, float_format=lambda x: f"{x:.6f}"))
        if len(df_clean) > max_rows:
            f.write(f"<p>Showing {max_rows} rows out of {len(df_clean)} total. See the CSV file for complete data.</p>")

        f.write("""
        </div>

        <div class="section">
            <p><em>Report generated automatically by the benchmark suite.</em></p>
        </div>
    </div>
</body>
</html>
""")

    print(f"Report generated successfully: {output_report}")
    return True

def main():
    """Main function to generate the report."""
    if not generate_html_report():
        print("Failed to generate report. Please check if benchmark data exists.")
        return 1
    return 0

if __name__ == "__main__":
    exit(main())
