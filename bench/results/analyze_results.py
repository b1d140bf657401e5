import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import os
import numpy as np

# Load results
results_file = os.path.join("bench", "results", "benchmark_results.csv")
if not os.path.exists(results_file):
    print(f"Error: Results file not found: {results_file}")
    exit(1)

df = pd.read_csv(results_file)

# Clean data
df = df.replace("FAIL", np.nan)
df['avg_time'] = pd.to_numeric(df['avg_time'], errors='coerce')
df['min_time'] = pd.to_numeric(df['min_time'], errors='coerce')
df['max_time'] = pd.to_numeric(df['max_time'], errors='coerce')
df['stdev'] = pd.to_numeric(df['stdev'], errors='coerce')

# Filter out rows with nan values
df_clean = df.dropna(subset=['avg_time']).copy()

# Calculate throughput
df_clean['throughput_MBps'] = (df_clean['slice_size'] / (1024 * 1024)) / df_clean['avg_time']
df_clean['block'] = df_clean['block_size'].map(lambda b: f"{b // 1024}K" if b >= 1024 else f"{b}B")

plots_dir = os.path.join("bench", "results", "plots")
os.makedirs(plots_dir, exist_ok=True)

sns.set(style="whitegrid", palette="colorblind", font_scale=1.2)

# --- Plot 1: Carve time by file size for each block size, whole file ---
plt.figure(figsize=(12, 7))
full_file_df = df_clean[df_clean['scenario'] == 'full_file']
if not full_file_df.empty:
    sns.lineplot(
        data=full_file_df,
        x="file_size_MB",
        y="avg_time",
        hue="block",
        marker="o",
        linewidth=2.5
    )
    plt.title("Carve Performance - Entire File", fontsize=16)
    plt.xlabel("File Size (MB)", fontsize=14)
    plt.ylabel("Execution Time (seconds)", fontsize=14)
    plt.yscale("log")
    plt.xticks(sorted(df_clean['file_size_MB'].unique()))
    plt.legend(title="Block Size", fontsize=12, title_fontsize=13)
    plt.tight_layout()
    plt.savefig(os.path.join(plots_dir, "time_by_file_size.png"))
plt.close()

# --- Plot 2: 1MB carve from the start of the source ---
plt.figure(figsize=(12, 7))
small_df = df_clean[df_clean['scenario'] == 'small_start']
if not small_df.empty:
    sns.lineplot(
        data=small_df,
        x="file_size_MB",
        y="avg_time",
        hue="block",
        marker="o",
        linewidth=2.5
    )
    plt.title("Carving 1MB from Start", fontsize=16)
    plt.xlabel("Source File Size (MB)", fontsize=14)
    plt.ylabel("Execution Time (seconds)", fontsize=14)
    plt.yscale("log")
    plt.xticks(sorted(df_clean['file_size_MB'].unique()))
    plt.legend(title="Block Size", fontsize=12, title_fontsize=13)
    plt.tight_layout()
    plt.savefig(os.path.join(plots_dir, "small_carve_performance.png"))
plt.close()

# --- Plot 3: Time against block size, one figure per scenario ---
for scenario, scenario_df in df_clean.groupby('scenario'):
    plt.figure(figsize=(14, 8))
    sns.lineplot(
        data=scenario_df,
        x="block_size",
        y="avg_time",
        hue="file_size_MB",
        marker="o",
        linewidth=2.5
    )
    plt.title(f"Block Size Comparison - {scenario}", fontsize=16)
    plt.xlabel("Block Size (bytes)", fontsize=14)
    plt.ylabel("Execution Time (seconds)", fontsize=14)
    plt.xscale("log", base=2)
    plt.yscale("log")
    plt.legend(title="File Size (MB)", fontsize=12, title_fontsize=13)
    plt.tight_layout()
    plt.savefig(os.path.join(plots_dir, f"block_size_{scenario}.png"))
    plt.close()

# --- Plot 4: Throughput (MB/s) per block size for the 20MB chunk ---
plt.figure(figsize=(14, 8))
large_chunk_df = df_clean[df_clean['scenario'] == 'large_chunk']
if not large_chunk_df.empty:
    large_chunk_df = large_chunk_df.sort_values('block_size')
    sns.barplot(
        data=large_chunk_df,
        x="block",
        y="throughput_MBps",
        hue="file_size_MB",
        palette="viridis",
        errorbar=None
    )
    plt.title("Throughput - 20MB Chunk", fontsize=16)
    plt.xlabel("Block Size", fontsize=14)
    plt.ylabel("Throughput (MB/s)", fontsize=14)
    plt.legend(title="File Size (MB)", fontsize=12, title_fontsize=13)
    plt.tight_layout()
    plt.savefig(os.path.join(plots_dir, "throughput_comparison.png"))
plt.close()

# --- Summary table ---
print("\nPerformance Summary:")
print("-" * 80)

summary = df_clean.groupby(['block_size', 'scenario']).agg({
    'avg_time': ['mean', 'min', 'max'],
    'stdev': 'mean',
    'throughput_MBps': ['mean', 'max']
}).reset_index()

summary_csv = os.path.join("bench", "results", "performance_summary.csv")
summary.to_csv(summary_csv)
print(summary)
print(f"Summary saved to {summary_csv}")

print("\nAnalysis complete. Plots saved to bench/results/plots/")
