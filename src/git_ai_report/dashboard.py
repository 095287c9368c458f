"""Render the aggregated dashboard data as a single-file interactive HTML report.

The report embeds the flattened data as a JSON blob inside a ``<script>`` tag.
The embedded script re-aggregates that blob whenever the user applies a
filter; :func:`filter_dashboard` performs the same steps in Python.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import html
import json

from .aggregate import commit_day
from .metrics import pct
from .models import DashboardData

TIME_FILTERS: tuple[tuple[str, str], ...] = (
    ("all", "All Time"),
    ("7", "Last 7 Days"),
    ("30", "Last 30 Days"),
    ("90", "Last 90 Days"),
    ("180", "Last 6 Months"),
    ("365", "Last Year"),
)

CHART_JS_URL = "https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"


def dashboard_payload(data: DashboardData) -> dict:
    """
    Flatten DashboardData into plain lists for embedding.

    Dates ascend; models, tools and authors descend by commits; files descend by
    modifications. Sorting is stable, so ties keep processing order.
    """
    return {
        "commits": [dataclasses.asdict(c) for c in data.recent_commits],
        "commits_by_date": [dataclasses.asdict(s) for s in sorted(data.commits_by_date.values(), key=lambda s: s.date)],
        "models": [dataclasses.asdict(m) for m in sorted(data.model_usage.values(), key=lambda m: -m.commits)],
        "tools": [dataclasses.asdict(t) for t in sorted(data.tool_usage.values(), key=lambda t: -t.commits)],
        "authors": [dataclasses.asdict(a) for a in sorted(data.author_stats.values(), key=lambda a: -a.commits)],
        "files": [dataclasses.asdict(f) for f in sorted(data.file_stats.values(), key=lambda f: -f.modifications)],
        "acceptance_rates": [dict(r) for r in data.acceptance_rates],
        "total_commits": data.total_commits,
        "total_files": data.total_files,
        "total_lines": data.total_lines,
        "ai_lines": data.ai_lines,
        "human_lines": data.human_lines,
        "ai_percentage": data.ai_percentage,
    }


def _cutoff_day(days: int, now: dt.datetime | None) -> str:
    if now is None:
        now = dt.datetime.now(tz=dt.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    return (now.astimezone(dt.timezone.utc) - dt.timedelta(days=days)).date().isoformat()


def filter_dashboard(
    payload: dict,
    *,
    time_filter: str = "all",
    tool: str = "all",
    model: str = "all",
    author: str = "all",
    now: dt.datetime | None = None,
) -> dict:
    """
    Re-aggregate an embedded payload under the dashboard filters.

    The time window is measured back from `now` (current UTC time by default), not
    from the newest commit. Tool and model filters narrow the recent commits and the
    matching rollup list by exact match; the author filter matches the commit's git
    author exactly. Totals, the per-date series and the author table are then rebuilt
    from the remaining commits so they stay consistent with each other.
    """
    out = dict(payload)
    commits = [dict(c) for c in payload.get("commits", [])]

    if time_filter != "all":
        cutoff = _cutoff_day(int(time_filter), now)
        commits = [c for c in commits if commit_day(c.get("date", "")) >= cutoff]
    if tool != "all":
        commits = [c for c in commits if c.get("tool") == tool]
        out["tools"] = [t for t in payload.get("tools", []) if t.get("tool") == tool]
    if model != "all":
        commits = [c for c in commits if c.get("model") == model]
        out["models"] = [m for m in payload.get("models", []) if m.get("model") == model]
    if author != "all":
        commits = [c for c in commits if c.get("author") == author]
    out["commits"] = commits

    by_date: dict[str, dict] = {}
    for c in commits:
        day = commit_day(c.get("date", ""))
        row = by_date.setdefault(day, {"date": day, "count": 0, "ai_lines": 0, "total_lines": 0, "ai_percent": 0.0})
        row["count"] += 1
        row["total_lines"] += c.get("total_lines") or 0
        row["ai_lines"] += c.get("ai_lines") or 0
    for row in by_date.values():
        row["ai_percent"] = pct(row["ai_lines"], row["total_lines"])
    out["commits_by_date"] = sorted(by_date.values(), key=lambda r: r["date"])

    total_lines = sum((c.get("total_lines") or 0) for c in commits)
    ai_lines = sum((c.get("ai_lines") or 0) for c in commits)
    out["total_commits"] = len(commits)
    out["total_lines"] = total_lines
    out["ai_lines"] = ai_lines
    out["human_lines"] = total_lines - ai_lines
    out["ai_percentage"] = pct(ai_lines, total_lines)
    out["total_files"] = len({f for c in commits for f in (c.get("files") or [])})

    # Commits carry the git author; the rollup is keyed by the note author it starts.
    known_authors = [str(a.get("author", "")) for a in payload.get("authors", [])]
    authors: dict[str, dict] = {}
    for c in commits:
        short = str(c.get("author", ""))
        key = next((full for full in known_authors if full.startswith(short)), short)
        row = authors.setdefault(key, {"author": key, "commits": 0, "total_lines": 0, "ai_assisted_lines": 0, "ai_usage_percent": 0.0})
        row["commits"] += 1
        row["total_lines"] += c.get("total_lines") or 0
        row["ai_assisted_lines"] += c.get("ai_lines") or 0
    for row in authors.values():
        row["ai_usage_percent"] = pct(row["ai_assisted_lines"], row["total_lines"])
    out["authors"] = sorted(authors.values(), key=lambda r: -r["commits"])
    return out


def _script_json(data: object) -> str:
    # Keep the blob from closing the surrounding <script> element.
    return json.dumps(data, ensure_ascii=False).replace("</", "<\\/")


def _options(values: list[str]) -> str:
    return "".join(f'<option value="{html.escape(v, quote=True)}">{html.escape(v)}</option>' for v in values)


def render_dashboard_html(data: DashboardData, repo_name: str | None = None, *, generated_at: str | None = None) -> str:
    payload = dashboard_payload(data)
    if generated_at is None:
        generated_at = dt.datetime.now(tz=dt.timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    tool_labels = [str(t["tool"]) for t in payload["tools"]]
    model_labels = [str(m["model"]) for m in payload["models"]]
    author_labels = sorted({c.author for c in data.recent_commits})
    time_options = "".join(f'<option value="{v}">{label}</option>' for v, label in TIME_FILTERS)

    title = "AI Authorship Dashboard" + (f" - {repo_name}" if repo_name else "")
    replacements = {
        "__TITLE__": html.escape(title),
        "__REPO_NAME__": html.escape(repo_name or "Repository"),
        "__CHART_JS_URL__": CHART_JS_URL,
        "__TIME_OPTIONS__": time_options,
        "__TOOL_OPTIONS__": _options(tool_labels),
        "__MODEL_OPTIONS__": _options(model_labels),
        "__AUTHOR_OPTIONS__": _options(author_labels),
        "__GENERATED_AT__": html.escape(generated_at),
        "__DATA_JSON__": _script_json(payload),
    }
    out = _TEMPLATE
    for key, value in replacements.items():
        out = out.replace(key, value)
    return out


_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>__TITLE__</title>
  <script src="__CHART_JS_URL__"></script>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Ubuntu, sans-serif;
      background: #f3f4f8; color: #1f2330; padding: 24px;
    }
    .container { max-width: 1280px; margin: 0 auto; }
    header { margin-bottom: 24px; }
    header h1 { font-size: 28px; }
    .subtitle { color: #5b6275; margin-top: 4px; }
    .panel { background: #fff; border-radius: 12px; padding: 20px; box-shadow: 0 1px 3px rgba(0,0,0,.08); margin-bottom: 20px; }
    .filters-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 12px; align-items: end; }
    .filter-label { display: block; font-size: 12px; font-weight: 600; color: #5b6275; margin-bottom: 4px; }
    .filter-select { width: 100%; padding: 8px; border: 1px solid #d5d9e3; border-radius: 6px; background: #fff; }
    .filter-button { width: 100%; padding: 9px; border: 0; border-radius: 6px; background: #4f5bd5; color: #fff; font-weight: 600; cursor: pointer; }
    .filter-button:hover { background: #3f49b8; }
    .active-filters { margin-top: 12px; font-size: 13px; }
    .filter-tag { display: inline-block; background: #e8eafc; color: #3f49b8; border-radius: 12px; padding: 2px 10px; margin: 4px 4px 0 0; }
    .stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 16px; margin-bottom: 20px; }
    .stat-card { background: #fff; border-radius: 12px; padding: 18px; box-shadow: 0 1px 3px rgba(0,0,0,.08); }
    .stat-label { font-size: 13px; color: #5b6275; }
    .stat-value { font-size: 28px; font-weight: 700; margin-top: 6px; }
    .stat-sub { font-size: 12px; color: #5b6275; }
    .charts-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(420px, 1fr)); gap: 20px; }
    .charts-grid h2, .panel h2 { font-size: 16px; margin-bottom: 12px; }
    table { width: 100%; border-collapse: collapse; font-size: 13px; }
    th, td { text-align: left; padding: 8px; border-bottom: 1px solid #eceef3; }
    th { color: #5b6275; font-weight: 600; }
    .badge { display: inline-block; border-radius: 10px; padding: 1px 8px; font-size: 12px; font-weight: 600; }
    .badge-high { background: #dcfce7; color: #166534; }
    .badge-mid { background: #fef3c7; color: #92400e; }
    .badge-low { background: #fee2e2; color: #991b1b; }
    .progress { background: #eceef3; border-radius: 4px; height: 6px; margin-top: 4px; overflow: hidden; }
    .progress-fill { background: #4f5bd5; height: 100%; }
    code { font-family: SFMono-Regular, Menlo, monospace; font-size: 12px; }
    footer { text-align: center; color: #5b6275; font-size: 12px; margin-top: 24px; }
    @media (max-width: 640px) { .charts-grid { grid-template-columns: 1fr; } }
  </style>
</head>
<body>
  <div class="container">
    <header>
      <h1>🤖 AI Authorship Dashboard</h1>
      <p class="subtitle">__REPO_NAME__ - AI Code Contribution Analytics</p>
    </header>

    <div class="panel">
      <h2>🔍 Filters</h2>
      <div class="filters-grid">
        <div><label class="filter-label" for="timeFilter">Time Range</label>
          <select id="timeFilter" class="filter-select">__TIME_OPTIONS__</select></div>
        <div><label class="filter-label" for="toolFilter">Tool</label>
          <select id="toolFilter" class="filter-select"><option value="all">All Tools</option>__TOOL_OPTIONS__</select></div>
        <div><label class="filter-label" for="modelFilter">AI Model</label>
          <select id="modelFilter" class="filter-select"><option value="all">All Models</option>__MODEL_OPTIONS__</select></div>
        <div><label class="filter-label" for="authorFilter">Author</label>
          <select id="authorFilter" class="filter-select"><option value="all">All Authors</option>__AUTHOR_OPTIONS__</select></div>
        <div><button id="applyFilters" class="filter-button">Apply Filters</button></div>
      </div>
      <div id="activeFilters" class="active-filters" style="display: none;">
        <strong>Active Filters:</strong> <span id="filterTags"></span>
      </div>
    </div>

    <div class="stats-grid">
      <div class="stat-card"><div class="stat-label">📝 Commits with notes</div><div class="stat-value" id="statTotalCommits"></div></div>
      <div class="stat-card"><div class="stat-label">📁 Files modified</div><div class="stat-value" id="statTotalFiles"></div></div>
      <div class="stat-card"><div class="stat-label">📏 Total lines</div><div class="stat-value" id="statTotalLines"></div></div>
      <div class="stat-card"><div class="stat-label">🤖 AI contribution</div><div class="stat-value" id="statAIPercentage"></div></div>
      <div class="stat-card"><div class="stat-label">🤖 AI lines</div><div class="stat-value" id="summaryAILines"></div><div class="stat-sub" id="summaryAIPercent"></div></div>
      <div class="stat-card"><div class="stat-label">👤 Human lines</div><div class="stat-value" id="summaryHumanLines"></div><div class="stat-sub" id="summaryHumanPercent"></div></div>
    </div>

    <div class="charts-grid">
      <div class="panel"><h2>📅 Commits over time</h2><canvas id="timelineChart"></canvas></div>
      <div class="panel"><h2>📈 AI contribution over time (%)</h2><canvas id="acceptanceChart"></canvas></div>
      <div class="panel"><h2>📊 AI vs human lines per day</h2><canvas id="contributionChart"></canvas></div>
      <div class="panel"><h2>🥧 AI vs human lines</h2><canvas id="aiHumanPieChart"></canvas></div>
      <div class="panel"><h2>🧠 Models (top 5)</h2><canvas id="modelChart"></canvas></div>
      <div class="panel"><h2>🔧 Tools</h2><canvas id="toolChart"></canvas></div>
    </div>

    <div class="panel">
      <h2>👥 Authors</h2>
      <table><thead><tr><th>Author</th><th>Commits</th><th>Total lines</th><th>AI usage</th></tr></thead>
        <tbody id="authorStatsTable"></tbody></table>
    </div>

    <div class="panel">
      <h2>🏆 Top AI models</h2>
      <table><thead><tr><th>Model</th><th>Commits</th><th>Acceptance rate</th></tr></thead>
        <tbody id="modelStatsTable"></tbody></table>
    </div>

    <div class="panel">
      <h2>📁 Most modified files</h2>
      <table><thead><tr><th>File</th><th>Modifications</th><th>Total lines</th><th>AI lines</th><th>AI %</th><th>Last modified</th></tr></thead>
        <tbody id="fileStatsTable"></tbody></table>
    </div>

    <div class="panel">
      <h2>🕒 Recent commits</h2>
      <table><thead><tr><th>Commit</th><th>Date</th><th>Author</th><th>Message</th><th>Model</th><th>Lines</th><th>AI</th></tr></thead>
        <tbody id="recentCommitsTable"></tbody></table>
    </div>

    <footer><p>Generated __GENERATED_AT__</p></footer>
  </div>

  <script>
    const rawData = __DATA_JSON__;
    const charts = {};

    function dayOf(iso) { return String(iso || '').split('T')[0]; }
    function pct(part, whole) { return whole > 0 ? (part / whole) * 100 : 0; }
    function fmtLines(n) { return Math.round(n || 0).toLocaleString(); }
    function cell(text) { const td = document.createElement('td'); td.textContent = text; return td; }
    function rateCell(rate) {
      const td = document.createElement('td');
      const badge = document.createElement('span');
      badge.className = 'badge ' + (rate >= 80 ? 'badge-high' : rate >= 50 ? 'badge-mid' : 'badge-low');
      badge.textContent = rate.toFixed(1) + '%';
      const bar = document.createElement('div');
      bar.className = 'progress';
      const fill = document.createElement('div');
      fill.className = 'progress-fill';
      fill.style.width = Math.max(0, Math.min(100, rate)) + '%';
      bar.appendChild(fill);
      td.appendChild(badge);
      td.appendChild(bar);
      return td;
    }

    function initialView() {
      return Object.assign({}, rawData);
    }

    function filterData(timeFilter, toolFilter, modelFilter, authorFilter) {
      const filtered = Object.assign({}, rawData);
      let commits = rawData.commits.slice();

      if (timeFilter !== 'all') {
        const cutoff = new Date();
        cutoff.setUTCDate(cutoff.getUTCDate() - parseInt(timeFilter, 10));
        const cutoffStr = cutoff.toISOString().split('T')[0];
        commits = commits.filter(c => dayOf(c.date) >= cutoffStr);
      }
      if (toolFilter !== 'all') {
        commits = commits.filter(c => c.tool === toolFilter);
        filtered.tools = rawData.tools.filter(t => t.tool === toolFilter);
      }
      if (modelFilter !== 'all') {
        commits = commits.filter(c => c.model === modelFilter);
        filtered.models = rawData.models.filter(m => m.model === modelFilter);
      }
      if (authorFilter !== 'all') {
        commits = commits.filter(c => c.author === authorFilter);
      }
      filtered.commits = commits;

      const byDate = new Map();
      for (const c of commits) {
        const day = dayOf(c.date);
        if (!byDate.has(day)) {
          byDate.set(day, { date: day, count: 0, ai_lines: 0, total_lines: 0, ai_percent: 0 });
        }
        const row = byDate.get(day);
        row.count++;
        row.total_lines += c.total_lines || 0;
        row.ai_lines += c.ai_lines || 0;
      }
      for (const row of byDate.values()) {
        row.ai_percent = pct(row.ai_lines, row.total_lines);
      }
      filtered.commits_by_date = Array.from(byDate.values()).sort((a, b) => (a.date < b.date ? -1 : a.date > b.date ? 1 : 0));

      filtered.total_commits = commits.length;
      filtered.total_lines = commits.reduce((s, c) => s + (c.total_lines || 0), 0);
      filtered.ai_lines = commits.reduce((s, c) => s + (c.ai_lines || 0), 0);
      filtered.human_lines = filtered.total_lines - filtered.ai_lines;
      filtered.ai_percentage = pct(filtered.ai_lines, filtered.total_lines);

      const files = new Set();
      for (const c of commits) {
        for (const f of (c.files || [])) files.add(f);
      }
      filtered.total_files = files.size;

      const authors = new Map();
      for (const c of commits) {
        const full = rawData.authors.find(a => a.author.startsWith(c.author));
        const key = full ? full.author : c.author;
        if (!authors.has(key)) {
          authors.set(key, { author: key, commits: 0, total_lines: 0, ai_assisted_lines: 0, ai_usage_percent: 0 });
        }
        const row = authors.get(key);
        row.commits++;
        row.total_lines += c.total_lines || 0;
        row.ai_assisted_lines += c.ai_lines || 0;
      }
      for (const row of authors.values()) {
        row.ai_usage_percent = pct(row.ai_assisted_lines, row.total_lines);
      }
      filtered.authors = Array.from(authors.values()).sort((a, b) => b.commits - a.commits);
      return filtered;
    }

    function makeChart(id, config) {
      if (typeof Chart === 'undefined') return null;
      return new Chart(document.getElementById(id), config);
    }

    function setChart(name, labels, datasets) {
      const chart = charts[name];
      if (!chart) return;
      chart.data.labels = labels;
      datasets.forEach((d, i) => { chart.data.datasets[i].data = d; });
      chart.update();
    }

    function createCharts() {
      charts.timeline = makeChart('timelineChart', {
        type: 'bar', data: { labels: [], datasets: [{ label: 'Commits', data: [], backgroundColor: '#4f5bd5' }] }
      });
      charts.acceptance = makeChart('acceptanceChart', {
        type: 'line', data: { labels: [], datasets: [{ label: 'AI %', data: [], borderColor: '#10b981', tension: 0.3, fill: false }] },
        options: { scales: { y: { min: 0, suggestedMax: 100 } } }
      });
      charts.contribution = makeChart('contributionChart', {
        type: 'bar',
        data: { labels: [], datasets: [
          { label: 'AI lines', data: [], backgroundColor: '#4f5bd5' },
          { label: 'Human lines', data: [], backgroundColor: '#f59e0b' }
        ] },
        options: { scales: { x: { stacked: true }, y: { stacked: true } } }
      });
      charts.aiHumanPie = makeChart('aiHumanPieChart', {
        type: 'doughnut', data: { labels: ['AI', 'Human'], datasets: [{ data: [], backgroundColor: ['#4f5bd5', '#f59e0b'] }] }
      });
      charts.model = makeChart('modelChart', {
        type: 'doughnut', data: { labels: [], datasets: [{ data: [] }] }
      });
      charts.tool = makeChart('toolChart', {
        type: 'pie', data: { labels: [], datasets: [{ data: [] }] }
      });
    }

    function renderTable(id, rows, empty, colspan) {
      const body = document.getElementById(id);
      body.innerHTML = '';
      if (!rows.length) {
        const tr = document.createElement('tr');
        const td = cell(empty);
        td.colSpan = colspan;
        tr.appendChild(td);
        body.appendChild(tr);
        return;
      }
      for (const cells of rows) {
        const tr = document.createElement('tr');
        cells.forEach(c => tr.appendChild(c instanceof Node ? c : cell(c)));
        body.appendChild(tr);
      }
    }

    function updateDashboard(view) {
      document.getElementById('statTotalCommits').textContent = view.total_commits;
      document.getElementById('statTotalFiles').textContent = view.total_files;
      document.getElementById('statTotalLines').textContent = fmtLines(view.total_lines);
      document.getElementById('statAIPercentage').textContent = view.ai_percentage.toFixed(1) + '%';
      document.getElementById('summaryAILines').textContent = fmtLines(view.ai_lines);
      document.getElementById('summaryAIPercent').textContent = 'lines (' + view.ai_percentage.toFixed(1) + '%)';
      document.getElementById('summaryHumanLines').textContent = fmtLines(view.human_lines);
      document.getElementById('summaryHumanPercent').textContent = 'lines (' + (100 - view.ai_percentage).toFixed(1) + '%)';

      const days = view.commits_by_date;
      const labels = days.map(d => d.date);
      setChart('timeline', labels, [days.map(d => d.count)]);
      setChart('acceptance', labels, [days.map(d => Number(d.ai_percent.toFixed(1)))]);
      setChart('contribution', labels, [days.map(d => d.ai_lines), days.map(d => d.total_lines - d.ai_lines)]);
      setChart('aiHumanPie', ['AI', 'Human'], [[view.ai_lines, view.human_lines]]);
      const topModels = view.models.slice().sort((a, b) => b.commits - a.commits).slice(0, 5);
      setChart('model', topModels.map(m => m.model), [topModels.map(m => m.commits)]);
      setChart('tool', view.tools.map(t => t.tool), [view.tools.map(t => t.commits)]);
      renderTable('modelStatsTable', topModels.map(m => [
        m.model, String(m.commits), rateCell(m.acceptance_rate)
      ]), 'No models found for selected filters', 3);

      renderTable('authorStatsTable', view.authors.map(a => [
        a.author, String(a.commits), fmtLines(a.total_lines), a.ai_usage_percent.toFixed(1) + '%'
      ]), 'No authors found for selected filters', 4);
      renderTable('fileStatsTable', rawData.files.slice(0, 10).map(f => [
        f.filepath, String(f.modifications), fmtLines(f.total_lines), fmtLines(f.ai_lines),
        pct(f.ai_lines, f.total_lines).toFixed(1) + '%', dayOf(f.last_modified)
      ]), 'No files recorded', 6);
      renderTable('recentCommitsTable', view.commits.map(c => [
        c.short_sha, dayOf(c.date), c.author, c.message, c.model || '-', fmtLines(c.total_lines), c.ai_percent.toFixed(1) + '%'
      ]), 'No commits found for selected filters', 7);
    }

    function showFilterTags(timeFilter, toolFilter, modelFilter, authorFilter) {
      const tags = [];
      if (timeFilter !== 'all') tags.push('Time: Last ' + timeFilter + ' days');
      if (toolFilter !== 'all') tags.push('Tool: ' + toolFilter);
      if (modelFilter !== 'all') tags.push('Model: ' + modelFilter);
      if (authorFilter !== 'all') tags.push('Author: ' + authorFilter);
      const box = document.getElementById('activeFilters');
      const holder = document.getElementById('filterTags');
      holder.innerHTML = '';
      for (const t of tags) {
        const span = document.createElement('span');
        span.className = 'filter-tag';
        span.textContent = t;
        holder.appendChild(span);
      }
      box.style.display = tags.length ? 'block' : 'none';
    }

    document.getElementById('applyFilters').addEventListener('click', () => {
      const timeFilter = document.getElementById('timeFilter').value;
      const toolFilter = document.getElementById('toolFilter').value;
      const modelFilter = document.getElementById('modelFilter').value;
      const authorFilter = document.getElementById('authorFilter').value;
      showFilterTags(timeFilter, toolFilter, modelFilter, authorFilter);
      updateDashboard(filterData(timeFilter, toolFilter, modelFilter, authorFilter));
    });

    createCharts();
    updateDashboard(initialView());
  </script>
</body>
</html>
"""
