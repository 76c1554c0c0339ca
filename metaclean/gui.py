import os
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from metaclean.batch import clean_many, summarize
from metaclean.dispatcher import SUPPORTED_EXTENSIONS, is_supported

FILE_TYPES = [
    ("Office and PDF files", " ".join(f"*{ext}" for ext in SUPPORTED_EXTENSIONS)),
    ("All files", "*.*"),
]


class MetadataCleanerGUI:
    def __init__(self, root, output_folder=None):
        self.root = root
        self.output_folder = output_folder
        root.title("Metadata Cleaner")
        root.geometry("640x420")

        frm = ttk.Frame(root, padding=8)
        frm.pack(fill=tk.BOTH, expand=True)

        top = ttk.Frame(frm)
        top.pack(fill=tk.X, pady=6)
        ttk.Button(top, text="Open Files", command=self._add_files).pack(side=tk.LEFT)
        ttk.Button(top, text="Select Output Folder", command=self._select_folder).pack(side=tk.LEFT, padx=6)
        ttk.Button(top, text="Clean Metadata", command=self._do_clean).pack(side=tk.LEFT)

        self.file_list = tk.Listbox(frm, height=12, selectmode=tk.EXTENDED)
        self.file_list.pack(fill=tk.BOTH, expand=True, padx=6, pady=6)

        self.folder_var = tk.StringVar()
        self._show_folder()
        ttk.Label(frm, textvariable=self.folder_var).pack(anchor="w", padx=6)

        self.log_text = tk.Text(frm, height=8, wrap="word")
        self.log_text.pack(fill=tk.BOTH, expand=True, padx=6, pady=6)

    def _show_folder(self):
        self.folder_var.set(f"Output Folder: {self.output_folder or 'Not selected'}")

    def _log(self, *parts):
        self.log_text.insert(tk.END, " ".join(str(p) for p in parts) + "\n")
        self.log_text.see(tk.END)
        self.log_text.update_idletasks()

    def add_paths(self, paths):
        existing = set(self.file_list.get(0, tk.END))
        for path in paths:
            if is_supported(path) and path not in existing:
                self.file_list.insert(tk.END, path)
                existing.add(path)

    def _add_files(self):
        paths = filedialog.askopenfilenames(title="Select files to clean", filetypes=FILE_TYPES)
        if paths:
            self.add_paths(paths)

    def _select_folder(self):
        folder = filedialog.askdirectory(title="Select the folder where cleaned files will be saved.")
        if folder:
            self.output_folder = folder
            self._show_folder()
        return bool(folder)

    def _do_clean(self):
        if not self.output_folder:
            messagebox.showerror("Error", "No output folder selected. Please select an output folder.")
            if not self._select_folder():
                return
        files = list(self.file_list.get(0, tk.END))
        if not files:
            messagebox.showerror("Error", "No files selected.")
            return
        self.log_text.delete("1.0", tk.END)
        for path in files:
            self._log("Processing:", os.path.basename(path))
        results = clean_many(files, self.output_folder)
        report = summarize(results)
        self._log(report)
        if all(r.ok for r in results):
            messagebox.showinfo("Success", report)
        else:
            messagebox.showerror("Error", report)
        self.file_list.delete(0, tk.END)


def run(paths=(), output_folder=None):
    root = tk.Tk()
    app = MetadataCleanerGUI(root, output_folder=output_folder)
    app.add_paths(paths)
    root.mainloop()
