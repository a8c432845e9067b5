"""Cron presets, deployment regions and the starter handler."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Option:
    """A selectable value with a human-readable label."""

    value: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


CRON_PRESETS: tuple[Option, ...] = (
    Option("", "No schedule"),
    Option("* * * * *", "Every minute"),
    Option("*/5 * * * *", "Every 5 minutes"),
    Option("*/15 * * * *", "Every 15 minutes"),
    Option("0 * * * *", "Hourly"),
    Option("0 */6 * * *", "Every 6 hours"),
    Option("0 0 * * *", "Daily (midnight)"),
    Option("0 9 * * *", "Daily (9am)"),
    Option("0 0 * * 0", "Weekly (Sunday)"),
    Option("0 0 1 * *", "Monthly (1st)"),
)

REGION_OPTIONS: tuple[Option, ...] = (
    Option("iad1", "Washington, D.C., USA"),
    Option("sfo1", "San Francisco, USA"),
    Option("pdx1", "Portland, USA"),
    Option("cle1", "Cleveland, USA"),
    Option("gru1", "Sao Paulo, Brazil"),
    Option("hnd1", "Tokyo, Japan"),
    Option("icn1", "Seoul, South Korea"),
    Option("kix1", "Osaka, Japan"),
    Option("sin1", "Singapore"),
    Option("bom1", "Mumbai, India"),
    Option("syd1", "Sydney, Australia"),
    Option("cdg1", "Paris, France"),
    Option("arn1", "Stockholm, Sweden"),
    Option("dub1", "Dublin, Ireland"),
    Option("lhr1", "London, UK"),
    Option("fra1", "Frankfurt, Germany"),
    Option("cpt1", "Cape Town, South Africa"),
)

DEFAULT_FUNCTION_NAME = "handler"

DEFAULT_CODE = """// Web Standard Function Handler
// Click "Run" to test, "Deploy" to publish

console.log("Hello World");

export default async function handler(req: Request): Promise<Response> {
  // Use base URL for relative paths
  const url = new URL(req.url, "http://localhost");

  console.log("Hello From Handler");

  if (req.method === "GET") {
    return new Response(JSON.stringify({
      message: "Hello from your function!",
      timestamp: new Date().toISOString(),
      path: url.pathname,
    }), {
      headers: { "Content-Type": "application/json" }
    });
  }

  if (req.method === "POST") {
    const body = await req.json();
    return new Response(JSON.stringify({
      received: body,
      processed: true,
    }), {
      headers: { "Content-Type": "application/json" }
    });
  }

  return new Response("Method not allowed", { status: 405 });
}
"""


def get_cron_label(cron_expression: str | None) -> str | None:
    """Label of a preset schedule, or None for custom or empty expressions."""
    if not cron_expression:
        return None
    for preset in CRON_PRESETS:
        if preset.value == cron_expression:
            return preset.label
    return None


def get_region_info(region_code: str) -> Option | None:
    for region in REGION_OPTIONS:
        if region.value == region_code:
            return region
    return None
