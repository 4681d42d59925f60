from coursecatalog.cli import catalog

if __name__ == "__main__":
    catalog(prog_name="coursecatalog")
