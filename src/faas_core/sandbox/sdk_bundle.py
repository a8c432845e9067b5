"""The @faas/sdk support library written into every sandbox.

User handlers import ``Worker`` from ``@faas/sdk``; the package is laid out
under ``/tmp/node_modules`` so both ``bun -e`` and ``bun build`` resolve it.
"""

import json

SDK_PACKAGE_NAME = "@faas/sdk"
SDK_ROOT = "/tmp/node_modules/@faas/sdk"

SDK_BUNDLE = r"""// @faas/sdk
class Worker {
  capabilities = [];
  addCapability(capability) {
    this.capabilities.push(capability);
    return this;
  }
  getCapabilities() {
    return [...this.capabilities];
  }
  getCapability(name) {
    return this.capabilities.find((c) => c.name === name);
  }
  hasCapability(name) {
    return this.capabilities.some((c) => c.name === name);
  }
  async fetch(request) {
    const url = new URL(request.url, "http://localhost");
    const path = url.pathname;
    const method = request.method;
    if (method === "GET" && (path === "/" || path === "")) {
      return Response.json({
        capabilities: this.capabilities.map((c) => ({
          type: c.type,
          name: c.name,
          description: c.description
        }))
      });
    }
    const match = path.match(/^\/(skill|sync|automation)\/(.+)$/);
    if (!match) {
      return Response.json({ error: "Not found", path }, { status: 404 });
    }
    const [, type, name] = match;
    const capability = this.capabilities.find((c) => c.type === type && c.name === name);
    if (!capability) {
      return Response.json({ error: `Capability not found: ${type}/${name}` }, { status: 404 });
    }
    try {
      if (capability.type === "skill") {
        const input = method === "POST" ? await request.json() : {};
        const result = await capability.execute(input);
        return Response.json({ success: true, result });
      }
      if (capability.type === "sync") {
        await capability.sync();
        return Response.json({ success: true });
      }
      if (capability.type === "automation") {
        const event = await request.json();
        await capability.run(event);
        return Response.json({ success: true });
      }
      return Response.json({ error: "Unknown capability type" }, { status: 400 });
    } catch (error) {
      const message = error instanceof Error ? error.message : "Unknown error";
      return Response.json({ error: message }, { status: 500 });
    }
  }
}
function createWorker() {
  return new Worker;
}
export {
  createWorker,
  Worker
};"""

SDK_TYPES = """export interface Capability {
  name: string;
  description?: string;
}
export interface SyncCapability extends Capability {
  type: "sync";
  sync: () => Promise<void>;
}
export interface AutomationCapability extends Capability {
  type: "automation";
  trigger: "page_changed" | "database_changed";
  run: (event: AutomationEvent) => Promise<void>;
}
export interface SkillCapability<TInput = any, TOutput = any> extends Capability {
  type: "skill";
  execute: (input: TInput) => Promise<TOutput>;
}
export type WorkerCapability = SyncCapability | AutomationCapability | SkillCapability<any, any>;
export interface AutomationEvent {
  type: "page_changed" | "database_changed";
  targetId: string;
  timestamp: string;
  metadata?: Record<string, unknown>;
}
export declare class Worker {
  addCapability(capability: WorkerCapability): this;
  getCapabilities(): WorkerCapability[];
  getCapability(name: string): WorkerCapability | undefined;
  hasCapability(name: string): boolean;
  fetch(request: Request): Promise<Response>;
}
export declare function createWorker(): Worker;"""

SDK_PACKAGE_JSON = json.dumps(
    {
        "name": SDK_PACKAGE_NAME,
        "version": "0.0.1",
        "type": "module",
        "main": "dist/index.js",
        "types": "dist/index.d.ts",
    },
    separators=(",", ":"),
)
