import re
from typing import Dict, List, NamedTuple, Optional

# Ecosystem short name -> packages.ecosyste.ms registry name.
ECOSYSTEM_REGISTRY_MAP: Dict[str, str] = {
    "npm": "npmjs.org",
    "go": "proxy.golang.org",
    "docker": "hub.docker.com",
    "pypi": "pypi.org",
    "nuget": "nuget.org",
    "maven": "repo1.maven.org",
    "packagist": "packagist.org",
    "cargo": "crates.io",
    "rubygems": "rubygems.org",
    "cocoapods": "cocoapods.org",
    "pub": "pub.dev",
    "bower": "bower.io",
    "cpan": "metacpan.org",
    "alpine": "alpine-edge",
    "actions": "github actions",
    "cran": "cran.r-project.org",
    "clojars": "clojars.org",
    "conda": "conda-forge.org",
    "hex": "hex.pm",
    "hackage": "hackage.haskell.org",
    "julia": "juliahub.com",
    "swiftpm": "swiftpackageindex.com",
    "openvsx": "open-vsx.org",
    "spack": "spack.io",
    "homebrew": "formulae.brew.sh",
    "adelie": "pkg.adelielinux.org",
    "puppet": "forge.puppet.com",
    "deno": "deno.land",
    "elm": "package.elm-lang.org",
    "vcpkg": "vcpkg.io",
    "racket": "pkgs.racket-lang.org",
    "bioconductor": "bioconductor.org",
    "carthage": "carthage",
    "postmarketos": "postmarketos-master",
    "elpa": "elpa.gnu.org",
}

REGISTRY_ECOSYSTEM_MAP: Dict[str, str] = {v: k for k, v in ECOSYSTEM_REGISTRY_MAP.items()}

_PURL_RE = re.compile(r"^pkg:([^/]+)/(.+?)(?:@(.+))?$")


class ParsedPurl(NamedTuple):
    ecosystem: str
    name: str
    version: Optional[str] = None


def ecosystem_to_registry(ecosystem: Optional[str]) -> Optional[str]:
    """
    Map an ecosystem name (case-insensitive) to its registry, or None.
    """
    if not ecosystem:
        return None
    return ECOSYSTEM_REGISTRY_MAP.get(ecosystem.lower())


def registry_to_ecosystem(registry: Optional[str]) -> Optional[str]:
    if not registry:
        return None
    return REGISTRY_ECOSYSTEM_MAP.get(registry.lower())


def supported_ecosystems() -> List[str]:
    return sorted(ECOSYSTEM_REGISTRY_MAP)


def parse_purl(purl: Optional[str]) -> Optional[ParsedPurl]:
    """
    Split a package URL of the form pkg:<ecosystem>/<name>[@<version>].

    The name may contain slashes (namespaced packages) and is returned
    as-is, without percent-decoding. Anything else yields None so callers
    can try another strategy.
    """
    if not purl:
        return None
    match = _PURL_RE.match(purl)
    if not match:
        return None
    return ParsedPurl(match.group(1), match.group(2), match.group(3))
