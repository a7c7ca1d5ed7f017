# wolfictl

A Python library for working with a directory of Melange package
configurations.

## Modules

- `wolfictl.melange` parses configuration YAML into dataclasses
  (`Configuration`, `Package`, `Copyright`, `Dependencies`, `Environment`,
  `Contents`, `Pipeline`, `Subpackage`). `read_all_packages_from_repo` reads
  every top-level `.yaml` file in a directory that has a package name and
  version; `read_package_configs` reads the named packages, or all of them when
  none are named. `find_nolint` returns the rule names of the first
  `#nolint:` line of a file.
- `wolfictl.configs` — `Index.from_fs(DirFS(...))` or
  `Index.from_paths(base_dir, *paths)` loads configurations both as
  `Configuration` objects and as round-trip YAML. `Index.select()` gives a
  `Selection`, narrowed with `where_package_name` and `where_file_path`. The
  `update_advisories`, `update_secfixes`, `update_package`,
  `update_environment`, `update_pipeline` and `update_subpackages` methods call
  your function with a copy of each configuration, write what it returns into
  that section of the file and re-read the entry. Raise `SkipEntry` to leave an
  entry alone. `map_entries` and `flat_map_entries` apply a function to every
  entry of a selection.
- `wolfictl.dag` — `new_graph(directory)` builds a `Graph` of packages,
  subpackages and `environment.contents.packages` build dependencies (an edge
  A → B means A depends on B; edges that would form a cycle are skipped with a
  warning). `Graph` offers `sorted`, `subgraph_with_roots`,
  `subgraph_with_leaves`, `config`, `nodes`, `dependencies_of`, `pkg_info`,
  `make_target` and `makefile_entry`.
- `wolfictl.lint` — `Linter(Options(path=..., verbose=..., skip_rules=[...]))`
  runs the rules from `all_rules` against a directory or a single file and
  returns a `Result` of `EvalResult`s. Rules check for a Makefile entry (only
  when a `Makefile` exists; runs `make -C <path> list`), forbidden
  repositories and keyrings, a copyright licence, `package.epoch`, fetch URIs
  and SHA256/SHA512 digests, repeated dependencies, stray `$pkgdir`-style
  template variables, the version format, and git-checkout `expected-commit`
  and `tag`. Rules listed on a `#nolint:` line are skipped for that file.
  `Linter.print` and `Linter.print_rules` write through `logging`.
- `wolfictl.git` runs the `git` command: `parse_git_url`, `get_remote_url`,
  `create_tag`, `push_tag`, `get_version_from_tag` and
  `set_git_sign_options`.
- `wolfictl.version` — `Version` parses tags such as `v1.2.3rc1+meta` and
  orders them; `sort_versions` sorts oldest first.
- `wolfictl.release` — `ReleaseOptions.bump_release_version` computes the next
  version; `ReleaseOptions.release` tags it, pushes the tag and creates a GitHub
  release. `new_release_options()` uses `GITHUB_TOKEN` and at most one API
  request every three seconds.
- `wolfictl.github` — `GitOptions` wraps a `GitHubClient` to list, find, open
  and comment on issues, add reactions, and open, list and close pull requests,
  following pagination and sleeping and retrying when rate limited.
- `wolfictl.apkindex` — `fetch_index(arch, repo)` reads `APKINDEX.tar.gz` from
  `<repo>/<arch>/` over HTTP(S), or from a local archive path.
- `wolfictl.untar` — `untar(stream, dst)` extracts a gzip-compressed tarball
  and raises `TaintedPathError` for members that would land outside `dst`.
- `wolfictl.ratelimit` (`RateLimiter`, `RateLimitedClient`), `wolfictl.rwfs`
  (`DirFS`) and `wolfictl.stringhelpers` (`regexp_split`, `is_uri`,
  `is_file_path`) are the supporting pieces.

## Examples

Lint a directory of configurations:

```python
import logging

from wolfictl.lint import Linter, Options

logging.basicConfig(level=logging.INFO)
linter = Linter(Options(path="packages/", verbose=True))
result = linter.lint()
linter.print(result)
if result.has_errors():
    raise SystemExit(1)
```

Build a dependency graph and print a build order:

```python
from wolfictl.dag import new_graph

graph = new_graph("packages/")
for name in graph.subgraph_with_roots(["openssl"]).sorted():
    print(name)
```

Update the `package` section of one configuration:

```python
from wolfictl.configs import Index
from wolfictl.rwfs import DirFS

index = Index.from_fs(DirFS("packages/"))

def bump_epoch(cfg):
    pkg = cfg.package
    pkg.epoch += 1
    return pkg

index.select().where_package_name("zlib").update_package(bump_epoch)
```

Work out the next release version:

```python
from wolfictl.release import ReleaseOptions
from wolfictl.version import Version

opts = ReleaseOptions(bump_prerelease_with_prefix="rc")
print(opts.bump_release_version(Version("v1.2.3")))  # v1.2.4rc1
```

## Environment

`new_release_options()` and `push_tag` read the token from `GITHUB_TOKEN`.
`create_tag` uses `GIT_AUTHOR_NAME` and `GIT_AUTHOR_EMAIL` as the tagger when
both are set; `set_git_sign_options` requires them.

## What it does not do

- There is no command-line program; everything is called from Python.
- Configurations are read as plain YAML: pipelines named by `uses` are not
  expanded, so the dependency graph only sees packages listed under
  `environment.contents.packages`.
- Version bumping of package configurations themselves and building packages
  are not provided.